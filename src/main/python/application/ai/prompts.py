"""
Prompts do Agente Cenário e rubrica de completude compartilhada.

A rubrica é consumida tanto pelo montador do prompt de monitoramento quanto
pela validação local do status retornado pelo modelo.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class RubricItem:
    key: str
    label: str
    description: str


@dataclass(frozen=True)
class ScoringRubric:
    version: str
    items: Tuple[RubricItem, ...]
    points_per_item: float
    complete_threshold: int

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(item.key for item in self.items)

    @property
    def max_score(self) -> int:
        return int(round(self.points_per_item * len(self.items)))

    def label_for(self, key: str) -> str:
        for item in self.items:
            if item.key == key:
                return item.label
        return key

    def is_complete(self, score: int) -> bool:
        return score >= self.complete_threshold

    def score_flags(self, flags: dict) -> int:
        """Pontuação local: cada item presente vale points_per_item"""
        hits = sum(1 for key in self.keys if flags.get(key))
        return int(round(hits * self.points_per_item))


SCORING_RUBRIC = ScoringRubric(
    version="2024.1",
    items=(
        RubricItem('identificacao', 'Identificação', 'Órgão e localização confirmados'),
        RubricItem('problema', 'Problema', 'Descrição clara da necessidade'),
        RubricItem('impacto', 'Impacto', 'Impacto prático (quantificado ou estimado)'),
        RubricItem('beneficiarios', 'Beneficiários', 'Quem será beneficiado (quantidade aproximada)'),
        RubricItem('solucaoCandidata', 'Solução candidata', 'Pelo menos UMA hipótese de solução mencionada'),
        RubricItem('quantitativos', 'Quantitativos', 'Estimativa de quantidade (mesmo aproximada)'),
        RubricItem('prazos', 'Prazos', 'Ideia de urgência/prazo (mesmo vago)'),
        RubricItem('orcamento', 'Orçamento', 'Indicação de recurso disponível ou não'),
    ),
    points_per_item=12.5,
    complete_threshold=70,
)

QUESTION_MARKER = "**Pergunta"


def _rubric_block() -> str:
    lines = [
        f"{i}. {item.label.upper()}: {item.description}"
        for i, item in enumerate(SCORING_RUBRIC.items, 1)
    ]
    return "\n".join(lines)


def _flags_schema() -> str:
    return ",\n".join(f'    "{key}": boolean' for key in SCORING_RUBRIC.keys)


MONITOR_SYSTEM_PROMPT = "Retorne JSON puro."

MONITOR_PROMPT = f"""Analise a conversa e determine se há INFORMAÇÕES ESSENCIAIS SUFICIENTES.

INFORMAÇÕES ESSENCIAIS (mínimo):
{_rubric_block()}

CRITÉRIOS (rubrica {SCORING_RUBRIC.version}):
- Cada item: até {SCORING_RUBRIC.points_per_item} pontos ({len(SCORING_RUBRIC.items)} itens = {SCORING_RUBRIC.max_score})
- COMPLETO (>={SCORING_RUBRIC.complete_threshold}): Suficiente para planejamento
- INCOMPLETO (<{SCORING_RUBRIC.complete_threshold}): Faltam informações críticas

CONVERSA:
[HISTORY]

RETORNE JSON PURO (sem markdown):
{{
  "isComplete": boolean,
  "score": number,
  "essentialInfo": {{
{_flags_schema()}
  }},
  "missingCritical": ["itens faltantes"],
  "message": "frase curta sobre status"
}}"""


ADAPTIVE_SYSTEM_PROMPT = "Gere perguntas adaptativas."

ADAPTIVE_PROMPT = """Analise as 10 respostas padrão + status de completude.

RESPOSTAS:
[ANSWERS]

STATUS:
[STATUS]

GERE ATÉ [MAX] PERGUNTAS ADAPTATIVAS focadas em:
1. ESCLARECER vagas/incompletas
2. QUANTIFICAR genéricas
3. DETALHAR hipótese de solução (se mencionada) ou explorar alternativas
4. PREENCHER LACUNAS críticas

REGRAS:
- Máximo [MAX] (pode ser menos se não houver lacunas)
- Específicas e conectadas às respostas
- Priorizar essenciais faltantes
- Tom conversacional
- Numerar a partir de "Pergunta [FIRST] de 20"
- Se sem lacunas: 3-5 perguntas de confirmação

FORMATO:
**Pergunta X de 20**
[Contexto: referência ao dito]
**[Pergunta principal]**
[Orientações: 2-3 bullets]

RETORNE TEXTO PURO (não JSON), perguntas separadas por linha dupla."""


SYNTHESIS_SYSTEM_PROMPT = "Retorne JSON puro."

SYNTHESIS_PROMPT = """Analise a conversa e extraia informações estruturadas.

INSTRUÇÕES:
1. Sintetize clara e objetivamente
2. Se não fornecido: "Não informado" ou "A definir"
3. FIDELIDADE ABSOLUTA ao dito (não invente)
4. Linguagem formal técnica
5. Quantifique quando possível
6. RETORNE JSON PURO (sem markdown/comentários)

CONVERSA:
[HISTORY]

JSON (sem ```json):
{
  "identificacao": {
    "orgaoNome": "string",
    "orgaoCNPJ": "string",
    "orgaoDemandante": "string",
    "uasg": "string ou vazio",
    "endereco": "string",
    "responsavel": "string",
    "cargo": "string",
    "email": "string",
    "telefone": "string",
    "data": "DD/MM/YYYY"
  },
  "necessidade": {
    "descricao": "Descrição sucinta (max 200 chars)",
    "naturezaDemanda": "Bem permanente|Material consumo|Serviço continuado|Serviço não continuado|Obra",
    "categoriaDemanda": "TIC|Obras|Serviços comuns|Engenharia|Saúde|Educação|Outro"
  },
  "justificativa": {
    "problemaDetalhado": "string",
    "situacaoAtual": "string",
    "impacto": "string",
    "beneficiarios": "string",
    "resultadoEsperado": "string",
    "alinhamentoEstrategico": "string ou Não informado"
  },
  "hipotesesSolucao": {
    "principal": "Hipótese mais viável ou Em aberto",
    "alternativas": "Outras hipóteses ou Nenhuma",
    "experienciasAnteriores": "string ou Não houve",
    "justificativaEscolha": "string ou A definir"
  },
  "requisitos": {
    "quantitativos": "string",
    "especificacoesTecnicas": "string",
    "localizacao": "string",
    "infraestrutura": "string"
  },
  "planejamento": {
    "prazo": "string",
    "orcamento": "string",
    "fonteRecurso": "string",
    "gestorFiscal": "string",
    "capacitacao": "string"
  },
  "riscos": {
    "naoContratar": "string",
    "daContratacao": "string",
    "legislacao": "string"
  }
}"""


def build_validation_prompt(user_message: str) -> str:
    """Prompt para pedir mais detalhes quando a resposta é curta ou vaga"""
    return (
        f'Resposta vaga: "{user_message}". Peça mais detalhes com exemplos. '
        "Seja cordial, cite a pergunta que está sendo respondida e termine com uma pergunta clara."
    )
