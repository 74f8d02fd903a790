"""
Cliente do gateway de IA (API compatível com chat/completions).

Monta um prompt único (instruções de sistema + histórico rotulado), aplica os
parâmetros de geração da fase, timeout por chamada e um número limitado de
novas tentativas com espera fixa entre elas.
"""
from __future__ import annotations

import os
import time
import logging
import threading
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from application.config.ai_config import AIConfig, get_ai_config, get_phase_timeout

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_RETRIES = 2
DEFAULT_BACKOFF_SECONDS = 1.0

ROLE_LABELS = {
    'user': 'Usuário',
    'assistant': 'Agente',
    'system': 'Sistema',
}


class AIGatewayError(Exception):
    """Falha genérica de comunicação com a IA"""

    status_code = 502
    user_message = "Erro ao comunicar com IA. Tente novamente."


class AITimeoutError(AIGatewayError):
    pass


class EmptyResponseError(AIGatewayError):
    pass


class CancelledError(AIGatewayError):
    status_code = 499
    user_message = "Requisição cancelada."


class RateLimitedError(AIGatewayError):
    status_code = 429
    user_message = "Limite de requisições excedido. Tente novamente em alguns instantes."


class QuotaExceededError(AIGatewayError):
    status_code = 402
    user_message = "Créditos insuficientes no provedor de IA. Contate o administrador."


# Erros que dependem de ação do usuário/administrador
NON_RETRYABLE = (RateLimitedError, QuotaExceededError, CancelledError)


def _role_and_content(message: Any):
    if isinstance(message, dict):
        return message.get('role', 'user'), message.get('content', '')
    return getattr(message, 'role', 'user'), getattr(message, 'content', '')


def build_prompt(system_prompt: str, transcript: Iterable[Any]) -> str:
    """Achata instruções + histórico em um único prompt"""
    lines = []
    for message in transcript:
        role, content = _role_and_content(message)
        lines.append(f"{ROLE_LABELS.get(role, 'Agente')}: {content}")
    history = "\n\n".join(lines)
    return f"{system_prompt}\n\n---\n\nHISTÓRICO:\n\n{history}"


class AIGatewayClient:
    """Cliente HTTP do modelo de linguagem, sem efeitos colaterais além da chamada de rede"""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not api_key:
            raise RuntimeError("Chave da API de IA não configurada")
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip('/')
        self.backoff_seconds = backoff_seconds
        self._http_client = http_client
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def call_model(
        self,
        transcript: Iterable[Any],
        phase: str,
        system_prompt: str,
        retries: int = DEFAULT_RETRIES,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Envia o prompt ao modelo e retorna o texto gerado.

        Args:
            transcript: Mensagens da conversa (objetos ou dicts com role/content)
            phase: Fase da conversa, define os parâmetros de geração
            system_prompt: Instruções de sistema
            retries: Novas tentativas além da primeira
            timeout: Timeout por tentativa em segundos (default da fase se None)
            cancel_event: Evento que interrompe novas tentativas quando sinalizado

        Raises:
            RateLimitedError, QuotaExceededError: imediatamente, sem nova tentativa
            AIGatewayError: após esgotar as tentativas
        """
        config = get_ai_config(phase)
        timeout = timeout if timeout is not None else get_phase_timeout(phase)
        payload = self._build_payload(config, build_prompt(system_prompt, transcript))

        logger.info(f"[AI] Phase: {phase} | Model: {config.model}")

        attempts = max(0, retries) + 1
        last_error: Optional[AIGatewayError] = None
        for attempt in range(1, attempts + 1):
            self._check_cancelled(cancel_event)
            try:
                return self._post(payload, timeout)
            except NON_RETRYABLE:
                raise
            except AIGatewayError as exc:
                last_error = exc
                logger.error(f"[AI] Error ({attempt}/{attempts}) phase={phase}: {exc}")

            if attempt < attempts:
                self._wait(cancel_event)

        raise last_error

    def _build_payload(self, config: AIConfig, prompt: str) -> Dict[str, Any]:
        payload = {
            'model': config.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'temperature': config.temperature,
            'max_tokens': config.max_output_tokens,
            'top_p': config.top_p,
        }
        if config.top_k is not None:
            payload['top_k'] = config.top_k
        return payload

    def _post(self, payload: Dict[str, Any], timeout: float) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            if self._http_client is not None:
                response = self._http_client.post(self.endpoint, headers=headers, json=payload, timeout=timeout)
            else:
                with httpx.Client(timeout=timeout) as cli:
                    response = cli.post(self.endpoint, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise AITimeoutError(f"AI timeout após {timeout}s") from exc
        except httpx.HTTPError as exc:
            raise AIGatewayError(f"Falha de rede: {exc}") from exc

        if response.status_code == 429:
            raise RateLimitedError("Rate limit excedido no gateway de IA")
        if response.status_code == 402:
            raise QuotaExceededError("Créditos do gateway de IA esgotados")
        if not response.is_success:
            logger.error(f"[AI] gateway error: {response.status_code} {response.text[:200]}")
            raise AIGatewayError(f"Gateway de IA retornou HTTP {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AIGatewayError("Resposta da IA em formato inesperado") from exc

        if not isinstance(content, str) or not content.strip():
            raise EmptyResponseError("Empty AI response")
        return content.strip()

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CancelledError("Chamada à IA cancelada")

    def _wait(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            self._sleep(self.backoff_seconds)
            return
        if cancel_event.wait(self.backoff_seconds):
            raise CancelledError("Chamada à IA cancelada")


def get_ai_gateway() -> AIGatewayClient:
    """Cria o cliente a partir das variáveis de ambiente"""
    return AIGatewayClient(
        api_key=os.getenv('CENARIO_AI_API_KEY'),
        base_url=os.getenv('CENARIO_AI_BASE_URL', DEFAULT_BASE_URL),
        backoff_seconds=float(os.getenv('CENARIO_AI_BACKOFF_SECONDS', str(DEFAULT_BACKOFF_SECONDS))),
    )
