"""
Configuração centralizada de geração por fase da conversa.
Fonte única de verdade para modelo, temperatura e orçamento de tokens.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Model tiers
MODEL_FAST = os.getenv("CENARIO_MODEL_FAST", "gpt-4.1-mini")
MODEL_PRO = os.getenv("CENARIO_MODEL_PRO", "gpt-4.1")

@dataclass(frozen=True)
class AIConfig:
    model: str
    temperature: float
    max_output_tokens: int
    top_p: float
    top_k: Optional[int] = None


_PHASE_CONFIGS = {
    'intro': AIConfig(MODEL_FAST, 0.75, 1024, 0.92, 38),
    'standard_questions': AIConfig(MODEL_FAST, 0.75, 1024, 0.92, 38),
    'validate_response': AIConfig(MODEL_FAST, 0.65, 768, 0.88, 32),
    'adaptive_questions': AIConfig(MODEL_PRO, 0.5, 2048, 0.85),
    'monitor_completeness': AIConfig(MODEL_PRO, 0.5, 2048, 0.85),
    'synthesis': AIConfig(MODEL_PRO, 0.2, 8192, 0.75),
    'docx_generation': AIConfig(MODEL_PRO, 0.2, 8192, 0.75),
}

_DEFAULT_CONFIG = AIConfig(MODEL_FAST, 0.7, 1024, 0.90, 35)

# Timeouts em segundos por fase
PHASE_TIMEOUTS = {
    'validate_response': 30.0,
    'monitor_completeness': 45.0,
    'adaptive_questions': 60.0,
    'synthesis': 90.0,
    'docx_generation': 90.0,
}
DEFAULT_TIMEOUT = 30.0

logger.info(f"[MODELS] Tiers loaded: fast={MODEL_FAST}, pro={MODEL_PRO}")


def get_ai_config(phase: str) -> AIConfig:
    """Retorna os parâmetros de geração da fase (ou o default para fases desconhecidas)"""
    return _PHASE_CONFIGS.get(phase, _DEFAULT_CONFIG)


def get_phase_timeout(phase: str) -> float:
    return PHASE_TIMEOUTS.get(phase, DEFAULT_TIMEOUT)
