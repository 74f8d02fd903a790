"""
Monitor de completude da coleta.

Pede ao modelo a pontuação das 8 informações essenciais e valida o JSON
retornado. Nunca lança exceção: qualquer falha devolve o status conservador.
"""
import logging
from typing import Iterable

from application.ai.gateway import AIGatewayError
from application.ai.prompts import MONITOR_PROMPT, MONITOR_SYSTEM_PROMPT
from domain.usecase.cenario.types import CompletenessStatus, Message
from domain.usecase.cenario.utils_parser import parse_embedded_json

logger = logging.getLogger(__name__)

MONITOR_TIMEOUT = 45.0


def format_compact_history(transcript: Iterable[Message]) -> str:
    return "\n".join(
        f"{'U' if m.role == 'user' else 'A'}: {m.content}"
        for m in transcript
    )


class CompletenessMonitor:

    def __init__(self, gateway):
        self.gateway = gateway

    def build_prompt(self, transcript: Iterable[Message]) -> str:
        return MONITOR_PROMPT.replace('[HISTORY]', format_compact_history(transcript))

    def monitor(self, transcript: Iterable[Message]) -> CompletenessStatus:
        prompt = self.build_prompt(transcript)
        try:
            response = self.gateway.call_model(
                [Message(role='user', content=prompt)],
                phase='monitor_completeness',
                system_prompt=MONITOR_SYSTEM_PROMPT,
                timeout=MONITOR_TIMEOUT,
            )
        except AIGatewayError as e:
            logger.error(f"[MONITOR] Erro na chamada à IA: {e}")
            return CompletenessStatus.default()

        parsed = parse_embedded_json(response)
        if not parsed.ok:
            logger.warning(f"[MONITOR] Resposta sem JSON válido: {parsed.error}")
            return CompletenessStatus.default()

        try:
            status = CompletenessStatus.from_model(parsed.value)
        except ValueError as e:
            logger.warning(f"[MONITOR] JSON fora do contrato: {e}")
            return CompletenessStatus.default()

        logger.info(f"[MONITOR] {status.score}% | Completo: {status.is_complete}")
        return status
