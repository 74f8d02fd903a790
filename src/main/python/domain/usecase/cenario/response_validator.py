"""Detecção de respostas curtas ou vagas antes de avançar a conversa."""

MIN_CHARS = 30
MIN_WORDS = 5
VAGUE_MAX_WORDS = 8

VAGUE_PHRASES = (
    'não sei',
    'talvez',
    'mais ou menos',
    'não tenho certeza',
)


def _word_count(text: str) -> int:
    return len(text.split())


def is_too_short(text: str) -> bool:
    trimmed = (text or "").strip()
    return len(trimmed) < MIN_CHARS or _word_count(trimmed) < MIN_WORDS


def is_vague(text: str) -> bool:
    trimmed = (text or "").strip().lower()
    return _word_count(trimmed) < VAGUE_MAX_WORDS and any(phrase in trimmed for phrase in VAGUE_PHRASES)


def needs_elaboration(text: str) -> bool:
    return is_too_short(text) or is_vague(text)
