"""
Parser robusto para respostas do LLM.
Tolerante a texto em volta do JSON e a cercas ```json```, sem lançar exceções:
cada ponto de parsing devolve um ParseResult.
"""

import json
import re
import logging
from typing import Any, Dict, List, Optional

from domain.usecase.cenario.types import ParseResult

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", flags=re.IGNORECASE)


def strip_code_fences(s: str) -> str:
    """Remove cercas markdown quando a resposta começa com ```"""
    if not isinstance(s, str):
        return s
    s = s.strip()
    if s.startswith('```'):
        match = _FENCE_RE.search(s)
        if match:
            return match.group(1).strip()
    return s


def extract_first_json_object(s: str) -> Optional[str]:
    """
    Retorna a primeira substring {...} com chaves balanceadas.
    Chaves dentro de strings JSON não contam.
    """
    if not isinstance(s, str):
        return None

    start = s.find('{')
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(s)):
        ch = s[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return s[start:i + 1]

    # Objeto truncado
    return None


def parse_embedded_json(s: str) -> ParseResult[Dict[str, Any]]:
    """Extrai e decodifica o primeiro objeto JSON em meio a texto livre"""
    if not isinstance(s, str) or not s.strip():
        return ParseResult.failure("resposta vazia")

    candidate = extract_first_json_object(s)
    if candidate is None:
        return ParseResult.failure("nenhum objeto JSON encontrado")

    try:
        return ParseResult.success(json.loads(candidate))
    except json.JSONDecodeError as e:
        logger.warning(f"parse_embedded_json: JSON decode failed - {e}")
        return ParseResult.failure(f"JSON inválido: {e}")


def parse_fenced_json(s: str) -> ParseResult[Dict[str, Any]]:
    """Decodifica uma resposta que deve ser um objeto JSON, com ou sem cercas"""
    if not isinstance(s, str) or not s.strip():
        return ParseResult.failure("resposta vazia")

    try:
        parsed = json.loads(strip_code_fences(s))
    except json.JSONDecodeError as e:
        logger.warning(f"parse_fenced_json: JSON decode failed - {e}")
        return ParseResult.failure(f"JSON inválido: {e}")

    if not isinstance(parsed, dict):
        return ParseResult.failure("JSON não é um objeto")
    return ParseResult.success(parsed)


def split_marked_blocks(s: str, marker: str, limit: int) -> List[str]:
    """Separa o texto em blocos por linha dupla e mantém só os que começam com o marcador"""
    if not isinstance(s, str) or limit <= 0:
        return []
    blocks = [block.strip() for block in re.split(r"\n\s*\n", s)]
    return [block for block in blocks if block.startswith(marker)][:limit]
