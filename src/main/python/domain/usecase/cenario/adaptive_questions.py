"""
Gerador de perguntas adaptativas (11 a 20).

A partir das respostas padrão e do status de completude, pede ao modelo até 10
blocos de pergunta iniciados por "**Pergunta". Falhas resultam em lista vazia,
que o orquestrador interpreta como "sem perguntas adicionais".
"""
import json
import logging
from typing import Iterable, List

from application.ai.gateway import AIGatewayError
from application.ai.prompts import ADAPTIVE_PROMPT, ADAPTIVE_SYSTEM_PROMPT, QUESTION_MARKER
from domain.usecase.cenario.types import CompletenessStatus, Message
from domain.usecase.cenario.utils_parser import split_marked_blocks

logger = logging.getLogger(__name__)

MAX_ADAPTIVE_QUESTIONS = 10
ADAPTIVE_TIMEOUT = 60.0


class AdaptiveQuestionGenerator:

    def __init__(self, gateway):
        self.gateway = gateway

    def build_prompt(
        self,
        fixed_answers: Iterable[Message],
        status: CompletenessStatus,
        max_questions: int = MAX_ADAPTIVE_QUESTIONS,
        first_number: int = 11,
    ) -> str:
        answers = [m for m in fixed_answers if m.role == 'user']
        answers_text = "\n\n".join(f"P{i}: {m.content}" for i, m in enumerate(answers, 1))
        status_text = json.dumps(status.to_dict(), ensure_ascii=False, indent=2)
        return (
            ADAPTIVE_PROMPT
            .replace('[ANSWERS]', answers_text)
            .replace('[STATUS]', status_text)
            .replace('[MAX]', str(max_questions))
            .replace('[FIRST]', str(first_number))
        )

    def generate(
        self,
        fixed_answers: Iterable[Message],
        status: CompletenessStatus,
        max_questions: int = MAX_ADAPTIVE_QUESTIONS,
        first_number: int = 11,
    ) -> List[str]:
        """Retorna de 0 a max_questions perguntas, todas iniciadas pelo marcador"""
        limit = max(0, min(max_questions, MAX_ADAPTIVE_QUESTIONS))
        if limit == 0:
            return []

        prompt = self.build_prompt(fixed_answers, status, limit, first_number)
        try:
            response = self.gateway.call_model(
                [Message(role='user', content=prompt)],
                phase='adaptive_questions',
                system_prompt=ADAPTIVE_SYSTEM_PROMPT,
                timeout=ADAPTIVE_TIMEOUT,
            )
        except AIGatewayError as e:
            logger.error(f"[ADAPTIVE] Erro: {e}")
            return []

        questions = split_marked_blocks(response, QUESTION_MARKER, limit)
        logger.info(f"[ADAPTIVE] Geradas {len(questions)} perguntas")
        return questions
