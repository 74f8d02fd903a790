"""
State Machine Guardrails for the Cenário interview.
Owns the single ConversationState value and the allowed phase transitions.
"""

import copy
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from application.ai.prompts import SCORING_RUBRIC
from domain.usecase.cenario.question_bank import FIXED_QUESTION_COUNT, MAX_QUESTION_NUMBER
from domain.usecase.cenario.types import CompletenessStatus


VALID_PHASES = [
    'questions',
    'synthesis',
    'complete',
]

# synthesis -> questions é o único retorno permitido (falha na síntese)
VALID_TRANSITIONS = {
    'questions': ['questions', 'synthesis'],
    'synthesis': ['complete', 'questions'],
    'complete': [],
}

DECISION_CONTINUE = 'continue'
DECISION_PROCEED = 'proceed'

_CONTINUE_PATTERNS = [
    r'^\s*1\s*[\.\)]?\s*$',
    r'^\s*(op[cç][aã]o\s*)?1\b',
    r'\bresponder\b',
    r'\bmais perguntas\b',
    r'\bperguntas adicionais\b',
    r'\bcontinuar respondendo\b',
    r'\bquero complementar\b',
]

_PROCEED_PATTERNS = [
    r'^\s*2\s*[\.\)]?\s*$',
    r'^\s*(op[cç][aã]o\s*)?2\b',
    r'\bprosseguir\b',
    r'\bseguir assim\b',
    r'\bpode gerar\b',
    r'\bgerar (a )?s[ií]ntese\b',
    r'\bcomplementar depois\b',
]


class InvalidTransitionError(Exception):
    pass


def validate_phase_transition(current_phase: str, next_phase: str) -> Tuple[bool, Optional[str]]:
    """
    Validate if a phase transition is allowed.

    Returns:
        (is_valid, error_message)
    """
    if current_phase not in VALID_PHASES:
        return False, f"Fase inválida: {current_phase}"

    if next_phase not in VALID_PHASES:
        return False, f"Fase de destino inválida: {next_phase}"

    if next_phase not in VALID_TRANSITIONS.get(current_phase, []):
        return False, f"Transição não permitida de {current_phase} para {next_phase}"

    return True, None


def parse_finalize_decision(user_message: str) -> Optional[str]:
    """
    Interpret the reply to the "answer more or proceed" prompt.
    Returns DECISION_CONTINUE, DECISION_PROCEED or None when ambiguous/unrecognized.
    """
    if not user_message:
        return None

    msg_lower = user_message.lower().strip()
    wants_more = any(re.search(p, msg_lower) for p in _CONTINUE_PATTERNS)
    wants_proceed = any(re.search(p, msg_lower) for p in _PROCEED_PATTERNS)

    if wants_more and not wants_proceed:
        return DECISION_CONTINUE
    if wants_proceed and not wants_more:
        return DECISION_PROCEED
    return None


def _empty_flags() -> Dict[str, bool]:
    return {key: False for key in SCORING_RUBRIC.keys}


@dataclass
class ConversationState:
    phase: str = 'questions'
    current_question_number: int = 0
    adaptive_questions: List[str] = field(default_factory=list)
    adaptive_generated: bool = False
    awaiting_finalize_decision: bool = False
    answered_questions: List[int] = field(default_factory=list)
    essential_info: Dict[str, bool] = field(default_factory=_empty_flags)
    completeness: Optional[CompletenessStatus] = None

    @property
    def in_adaptive_phase(self) -> bool:
        return self.current_question_number > FIXED_QUESTION_COUNT

    @property
    def total_questions(self) -> int:
        return FIXED_QUESTION_COUNT + len(self.adaptive_questions)

    def copy(self) -> 'ConversationState':
        return copy.deepcopy(self)

    def transition(self, next_phase: str) -> None:
        ok, error = validate_phase_transition(self.phase, next_phase)
        if not ok:
            raise InvalidTransitionError(error)
        self.phase = next_phase

    def advance_question(self, question_number: int) -> None:
        """Question numbers only move forward, within 0..20"""
        if question_number < self.current_question_number:
            raise InvalidTransitionError(
                f"Pergunta {question_number} anterior à atual ({self.current_question_number})"
            )
        if question_number > MAX_QUESTION_NUMBER:
            raise InvalidTransitionError(f"Pergunta {question_number} acima do limite de {MAX_QUESTION_NUMBER}")
        self.current_question_number = question_number

    def next_adaptive_question(self) -> Optional[str]:
        # a pergunta n (11..20) é adaptive_questions[n - 11]
        index = max(self.current_question_number, FIXED_QUESTION_COUNT) - FIXED_QUESTION_COUNT
        if index < len(self.adaptive_questions) and self.current_question_number < MAX_QUESTION_NUMBER:
            return self.adaptive_questions[index]
        return None

    def mark_answered(self, question_number: int, flags=()) -> None:
        if question_number and question_number not in self.answered_questions:
            self.answered_questions.append(question_number)
        for key in flags:
            self.essential_info[key] = True

    def to_snapshot(self) -> Dict[str, Any]:
        """Projection persisted as projects.collection_status"""
        return {
            'phase': self.phase,
            'sub_phase': 'adaptive' if self.in_adaptive_phase else 'standard',
            'current_question_number': self.current_question_number,
            'adaptive_questions': list(self.adaptive_questions),
            'adaptive_generated': self.adaptive_generated,
            'awaiting_finalize_decision': self.awaiting_finalize_decision,
            'answered_questions': list(self.answered_questions),
            'essential_info': dict(self.essential_info),
            'local_score': SCORING_RUBRIC.score_flags(self.essential_info),
            'completeness': self.completeness.to_dict() if self.completeness else None,
            'total': self.total_questions,
            'complete': self.phase == 'complete',
        }

    @classmethod
    def from_snapshot(cls, data: Optional[Dict[str, Any]]) -> 'ConversationState':
        if not isinstance(data, dict) or not data:
            return cls()

        phase = data.get('phase') if data.get('phase') in VALID_PHASES else 'questions'
        # síntese interrompida no meio do processo volta para perguntas
        if phase == 'synthesis':
            phase = 'questions'

        flags = _empty_flags()
        flags.update({k: bool(v) for k, v in (data.get('essential_info') or {}).items() if k in flags})

        return cls(
            phase=phase,
            current_question_number=max(0, min(MAX_QUESTION_NUMBER, int(data.get('current_question_number') or 0))),
            adaptive_questions=[str(q) for q in (data.get('adaptive_questions') or [])][:10],
            adaptive_generated=bool(data.get('adaptive_generated')),
            awaiting_finalize_decision=bool(data.get('awaiting_finalize_decision')),
            answered_questions=[int(n) for n in (data.get('answered_questions') or [])],
            essential_info=flags,
            completeness=CompletenessStatus.from_dict(data.get('completeness')),
        )
