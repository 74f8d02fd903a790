"""
Serviço de síntese do cenário.

Extrai do histórico completo o JSON estruturado do relatório, aplica a política
de valores padrão em todas as folhas e completa a identificação com o perfil
do usuário apenas onde o modelo não informou nada.
"""
import logging
from datetime import date
from typing import Any, Iterable, Optional

from application.ai.gateway import AIGatewayError
from application.ai.prompts import SYNTHESIS_PROMPT, SYNTHESIS_SYSTEM_PROMPT
from domain.usecase.cenario.types import Message, SynthesisData, is_blank
from domain.usecase.cenario.utils_parser import parse_fenced_json

logger = logging.getLogger(__name__)

SYNTHESIS_TIMEOUT = 90.0
SYNTHESIS_ERROR_MESSAGE = "Falha ao gerar síntese. Tente novamente."

# atributo de Identificacao -> campo do perfil
PROFILE_BACKFILL = (
    ('responsavel', 'full_name'),
    ('cargo', 'role_in_organization'),
    ('email', 'email'),
    ('telefone', 'telefone_contato'),
    ('orgao_nome', 'orgao_nome'),
    ('orgao_cnpj', 'orgao_cnpj'),
    ('orgao_demandante', 'orgao_demandante'),
    ('endereco', 'endereco_completo'),
)


class SynthesisFailure(Exception):
    """Síntese não pôde ser gerada; mensagem pronta para o usuário"""

    def __init__(self, message: str = SYNTHESIS_ERROR_MESSAGE):
        super().__init__(message)
        self.user_message = message


def format_history(transcript: Iterable[Message]) -> str:
    return "\n\n".join(
        f"{'U' if m.role == 'user' else 'A'}: {m.content}"
        for m in transcript
    )


def _profile_get(profile: Any, key: str) -> Optional[str]:
    if profile is None:
        return None
    value = profile.get(key) if isinstance(profile, dict) else getattr(profile, key, None)
    return None if is_blank(value) else str(value).strip()


def backfill_identification(synthesis: SynthesisData, profile: Any, today: Optional[date] = None) -> SynthesisData:
    """Preenche a identificação com dados do perfil somente onde o modelo não informou"""
    ident = synthesis.identificacao
    for attr, profile_key in PROFILE_BACKFILL:
        if is_blank(getattr(ident, attr)):
            value = _profile_get(profile, profile_key)
            if value:
                setattr(ident, attr, value)

    if is_blank(ident.data):
        ident.data = (today or date.today()).strftime('%d/%m/%Y')
    return synthesis


class SynthesisService:

    def __init__(self, gateway):
        self.gateway = gateway

    def build_prompt(self, transcript: Iterable[Message]) -> str:
        return SYNTHESIS_PROMPT.replace('[HISTORY]', format_history(transcript))

    def synthesize(self, transcript: Iterable[Message], profile: Any, today: Optional[date] = None) -> SynthesisData:
        """
        Raises:
            SynthesisFailure: falha de comunicação ou resposta que não é o JSON esperado
        """
        prompt = self.build_prompt(transcript)
        try:
            response = self.gateway.call_model(
                [Message(role='user', content=prompt)],
                phase='synthesis',
                system_prompt=SYNTHESIS_SYSTEM_PROMPT,
                timeout=SYNTHESIS_TIMEOUT,
            )
        except AIGatewayError as e:
            logger.error(f"[SYNTHESIS] Erro na chamada à IA: {e}")
            raise SynthesisFailure() from e

        parsed = parse_fenced_json(response)
        if not parsed.ok:
            logger.error(f"[SYNTHESIS] Resposta inválida: {parsed.error}")
            raise SynthesisFailure()

        synthesis = backfill_identification(SynthesisData.from_dict(parsed.value), profile, today)
        logger.info("[SYNTHESIS] Gerada com sucesso")
        return synthesis
