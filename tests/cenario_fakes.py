"""Fakes compartilhados pelos testes do Agente Cenário."""
import json
import os
import sys
from collections import defaultdict, deque

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "main", "python"))

from application.ai.gateway import AIGatewayError  # noqa: E402

ALL_KEYS = (
    'identificacao', 'problema', 'impacto', 'beneficiarios',
    'solucaoCandidata', 'quantitativos', 'prazos', 'orcamento',
)

GOOD_ANSWER = "A secretaria precisa modernizar o atendimento ao cidadão com urgência neste ano"

PROFILE = {
    'full_name': 'Maria Souza',
    'email': 'maria@prefeitura.gov.br',
    'role_in_organization': 'Coordenadora de TI',
    'orgao_demandante': 'Secretaria de Saúde',
    'orgao_nome': 'Prefeitura de Exemplo',
    'orgao_cnpj': '12.345.678/0001-90',
    'endereco_completo': 'Rua Central, 100',
    'telefone_contato': '(11) 4000-0000',
}


def monitor_json(present=ALL_KEYS, score=None, missing=None):
    flags = {key: key in present for key in ALL_KEYS}
    if score is None:
        score = int(12.5 * len(present))
    body = {
        'isComplete': score >= 70,
        'score': score,
        'essentialInfo': flags,
        'missingCritical': missing if missing is not None else [k for k in ALL_KEYS if k not in present],
        'message': 'ok',
    }
    return "Segue a análise:\n" + json.dumps(body)


def adaptive_text(count, first=11):
    return "\n\n".join(
        f"**Pergunta {n}**\nDetalhe o item {n} da demanda." for n in range(first, first + count)
    )


def synthesis_json(**overrides):
    body = {
        'identificacao': {'orgaoNome': 'Prefeitura de Exemplo', 'responsavel': '', 'data': ''},
        'necessidade': {'descricao': 'Modernizar o atendimento'},
        'justificativa': {'problemaDetalhado': 'Filas longas', 'impacto': 'Atrasos'},
        'hipotesesSolucao': {'principal': ''},
        'requisitos': {'quantitativos': '50 estações'},
        'planejamento': {'prazo': '6 meses'},
        'riscos': {'naoContratar': 'Piora do atendimento'},
    }
    body.update(overrides)
    return "```json\n" + json.dumps(body, ensure_ascii=False) + "\n```"


class ScriptedGateway:
    """
    Gateway falso: respostas enfileiradas por fase.
    Itens da fila que são exceções são lançados; fila vazia usa o default da fase.
    """

    def __init__(self, defaults=None):
        self.queues = defaultdict(deque)
        self.defaults = {
            'validate_response': "Poderia detalhar melhor sua resposta com exemplos?",
            'monitor_completeness': monitor_json(),
            'adaptive_questions': adaptive_text(2),
            'synthesis': synthesis_json(),
        }
        self.defaults.update(defaults or {})
        self.calls = []

    def push(self, phase, *responses):
        self.queues[phase].extend(responses)
        return self

    def count(self, phase):
        return sum(1 for call in self.calls if call['phase'] == phase)

    def call_model(self, transcript, phase, system_prompt, retries=2, timeout=None, cancel_event=None):
        self.calls.append({
            'phase': phase,
            'system_prompt': system_prompt,
            'transcript': list(transcript),
            'timeout': timeout,
        })
        if self.queues[phase]:
            response = self.queues[phase].popleft()
        else:
            response = self.defaults.get(phase)
        if isinstance(response, BaseException):
            raise response
        if response is None:
            raise AIGatewayError(f"sem resposta configurada para {phase}")
        return response
