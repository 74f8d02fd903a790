import json
import os
import sys
import threading
import unittest

import httpx

# Add src path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src', 'main', 'python'))

from application.ai.gateway import (
    AIGatewayClient,
    AIGatewayError,
    AITimeoutError,
    CancelledError,
    EmptyResponseError,
    QuotaExceededError,
    RateLimitedError,
    build_prompt,
)
from application.config.ai_config import get_ai_config, get_phase_timeout
from domain.usecase.cenario.types import Message


def _completion(content):
    return httpx.Response(200, json={'choices': [{'message': {'content': content}}]})


class _Handler:
    """Responde com a sequência configurada e guarda as requisições"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class TestBuildPrompt(unittest.TestCase):

    def test_prompt_labels_roles_and_separates_history(self):
        transcript = [
            Message(role='assistant', content='Pergunta 1'),
            {'role': 'user', 'content': 'Resposta 1'},
        ]
        prompt = build_prompt("Instruções", transcript)

        self.assertTrue(prompt.startswith("Instruções\n\n---\n\nHISTÓRICO:\n\n"))
        self.assertIn("Agente: Pergunta 1", prompt)
        self.assertIn("Usuário: Resposta 1", prompt)


class TestAIGatewayClient(unittest.TestCase):

    def setUp(self):
        self.sleeps = []

    def _client(self, handler, backoff=1.0):
        http_client = httpx.Client(transport=httpx.MockTransport(handler))
        return AIGatewayClient(
            api_key='test-key',
            base_url='https://gateway.test/v1',
            backoff_seconds=backoff,
            http_client=http_client,
            sleep=self.sleeps.append,
        )

    def test_requires_api_key(self):
        with self.assertRaises(RuntimeError):
            AIGatewayClient(api_key=None)

    def test_posts_phase_config_and_returns_text(self):
        handler = _Handler(_completion("  Olá!  "))
        client = self._client(handler)

        result = client.call_model([Message('user', 'oi')], phase='synthesis', system_prompt='Sys')

        self.assertEqual(result, "Olá!")
        self.assertEqual(len(handler.requests), 1)
        request = handler.requests[0]
        self.assertEqual(str(request.url), 'https://gateway.test/v1/chat/completions')
        self.assertEqual(request.headers['Authorization'], 'Bearer test-key')

        body = json.loads(request.content)
        config = get_ai_config('synthesis')
        self.assertEqual(body['model'], config.model)
        self.assertEqual(body['temperature'], 0.2)
        self.assertEqual(body['max_tokens'], 8192)
        self.assertEqual(body['top_p'], 0.75)
        self.assertNotIn('top_k', body)
        self.assertEqual(len(body['messages']), 1)
        self.assertEqual(body['messages'][0]['role'], 'user')
        self.assertIn('Usuário: oi', body['messages'][0]['content'])

    def test_top_k_sent_when_phase_defines_it(self):
        handler = _Handler(_completion("ok"))
        self._client(handler).call_model([], phase='validate_response', system_prompt='Sys')

        body = json.loads(handler.requests[0].content)
        self.assertEqual(body['top_k'], 32)

    def test_retries_generic_failures_with_fixed_backoff(self):
        handler = _Handler(httpx.Response(500, text='boom'), httpx.Response(503), _completion("finalmente"))
        client = self._client(handler, backoff=1.0)

        result = client.call_model([], phase='intro', system_prompt='Sys', retries=2)

        self.assertEqual(result, "finalmente")
        self.assertEqual(len(handler.requests), 3)
        self.assertEqual(self.sleeps, [1.0, 1.0])

    def test_raises_last_error_after_exhausting_attempts(self):
        handler = _Handler(httpx.Response(500))
        client = self._client(handler)

        with self.assertRaises(AIGatewayError):
            client.call_model([], phase='intro', system_prompt='Sys', retries=2)

        self.assertEqual(len(handler.requests), 3)
        self.assertEqual(len(self.sleeps), 2)

    def test_empty_response_is_retried_then_raised(self):
        handler = _Handler(_completion("   "))
        client = self._client(handler)

        with self.assertRaises(EmptyResponseError):
            client.call_model([], phase='intro', system_prompt='Sys', retries=1)

        self.assertEqual(len(handler.requests), 2)

    def test_timeout_is_mapped_and_retried(self):
        handler = _Handler(httpx.ReadTimeout("lento"), _completion("ok"))
        client = self._client(handler)

        self.assertEqual(client.call_model([], phase='intro', system_prompt='Sys'), "ok")
        self.assertEqual(len(handler.requests), 2)

    def test_timeout_error_after_budget(self):
        handler = _Handler(httpx.ConnectTimeout("lento"))
        with self.assertRaises(AITimeoutError):
            self._client(handler).call_model([], phase='intro', system_prompt='Sys', retries=0)

    def test_rate_limit_is_not_retried(self):
        handler = _Handler(httpx.Response(429))
        client = self._client(handler)

        with self.assertRaises(RateLimitedError) as ctx:
            client.call_model([], phase='intro', system_prompt='Sys', retries=2)

        self.assertEqual(len(handler.requests), 1)
        self.assertEqual(self.sleeps, [])
        self.assertEqual(ctx.exception.status_code, 429)

    def test_quota_is_not_retried(self):
        handler = _Handler(httpx.Response(402))
        client = self._client(handler)

        with self.assertRaises(QuotaExceededError) as ctx:
            client.call_model([], phase='intro', system_prompt='Sys', retries=2)

        self.assertEqual(len(handler.requests), 1)
        self.assertEqual(ctx.exception.status_code, 402)

    def test_unexpected_shape_is_gateway_error(self):
        handler = _Handler(httpx.Response(200, json={'data': []}))
        with self.assertRaises(AIGatewayError):
            self._client(handler).call_model([], phase='intro', system_prompt='Sys', retries=0)

    def test_cancel_event_stops_before_first_attempt(self):
        handler = _Handler(_completion("ok"))
        event = threading.Event()
        event.set()

        with self.assertRaises(CancelledError):
            self._client(handler).call_model([], phase='intro', system_prompt='Sys', cancel_event=event)

        self.assertEqual(handler.requests, [])


class TestAIConfig(unittest.TestCase):

    def test_phase_configs(self):
        self.assertEqual(get_ai_config('validate_response').max_output_tokens, 768)
        self.assertEqual(get_ai_config('monitor_completeness').temperature, 0.5)
        self.assertEqual(get_ai_config('intro').top_k, 38)

    def test_unknown_phase_uses_default(self):
        config = get_ai_config('nao_existe')
        self.assertEqual(config.temperature, 0.7)
        self.assertEqual(config.top_k, 35)

    def test_phase_timeouts(self):
        self.assertEqual(get_phase_timeout('synthesis'), 90.0)
        self.assertEqual(get_phase_timeout('adaptive_questions'), 60.0)
        self.assertEqual(get_phase_timeout('monitor_completeness'), 45.0)
        self.assertEqual(get_phase_timeout('standard_questions'), 30.0)


if __name__ == '__main__':
    unittest.main()
