"""
Tipos do Agente Cenário: mensagens, status de completude, síntese e
resultados de parsing das respostas do modelo.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from application.ai.prompts import SCORING_RUBRIC

logger = logging.getLogger(__name__)

T = TypeVar('T')

NAO_INFORMADO = "Não informado"
A_DEFINIR = "A definir"
SENTINELS = (NAO_INFORMADO, A_DEFINIR)


@dataclass
class Message:
    role: str  # user|assistant|system
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Resultado etiquetado de um ponto de parsing (valor ou motivo da falha)"""

    value: Optional[T] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> 'ParseResult[T]':
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> 'ParseResult[T]':
        return cls(error=error)

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default


# ============================================================================
# COMPLETENESS
# ============================================================================

def _empty_flags() -> Dict[str, bool]:
    return {key: False for key in SCORING_RUBRIC.keys}


@dataclass
class CompletenessStatus:
    is_complete: bool = False
    score: int = 0
    essential_info: Dict[str, bool] = field(default_factory=_empty_flags)
    missing_critical: List[str] = field(default_factory=list)
    message: str = ""

    @classmethod
    def default(cls) -> 'CompletenessStatus':
        """Status conservador usado sempre que o monitor não consegue avaliar"""
        return cls(
            is_complete=False,
            score=0,
            essential_info=_empty_flags(),
            missing_critical=["Todas as informações"],
            message="Ainda não há informações suficientes",
        )

    @classmethod
    def from_model(cls, raw: Any) -> 'CompletenessStatus':
        """
        Valida o JSON devolvido pelo modelo contra a rubrica.

        Raises:
            ValueError: quando o formato não corresponde ao contrato
        """
        if not isinstance(raw, dict):
            raise ValueError("status deve ser um objeto JSON")

        info = raw.get('essentialInfo')
        if not isinstance(info, dict):
            raise ValueError("essentialInfo ausente ou inválido")
        flags = {key: bool(info.get(key, False)) for key in SCORING_RUBRIC.keys}

        score = raw.get('score')
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            score = SCORING_RUBRIC.score_flags(flags)
        score = max(0, min(100, int(round(score))))

        is_complete = SCORING_RUBRIC.is_complete(score)
        if bool(raw.get('isComplete')) != is_complete:
            logger.info(f"[MONITOR] isComplete={raw.get('isComplete')} ajustado pela rubrica (score={score})")

        missing = raw.get('missingCritical')
        if isinstance(missing, list):
            missing = [str(item).strip() for item in missing if str(item).strip()]
        else:
            missing = [SCORING_RUBRIC.label_for(key) for key, present in flags.items() if not present]

        message = raw.get('message')
        return cls(
            is_complete=is_complete,
            score=score,
            essential_info=flags,
            missing_critical=missing,
            message=message if isinstance(message, str) else "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'isComplete': self.is_complete,
            'score': self.score,
            'essentialInfo': dict(self.essential_info),
            'missingCritical': list(self.missing_critical),
            'message': self.message,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['CompletenessStatus']:
        """Reidrata um snapshot persistido (None quando não há)"""
        if not data:
            return None
        try:
            return cls.from_model(data)
        except ValueError:
            return None


# ============================================================================
# SYNTHESIS
# ============================================================================

def _leaf(json_key: str, default: str = NAO_INFORMADO):
    return field(default=default, metadata={'json': json_key})


@dataclass
class Identificacao:
    orgao_nome: str = _leaf('orgaoNome')
    orgao_cnpj: str = _leaf('orgaoCNPJ')
    orgao_demandante: str = _leaf('orgaoDemandante')
    uasg: str = _leaf('uasg')
    endereco: str = _leaf('endereco')
    responsavel: str = _leaf('responsavel')
    cargo: str = _leaf('cargo')
    email: str = _leaf('email')
    telefone: str = _leaf('telefone')
    data: str = _leaf('data')


@dataclass
class Necessidade:
    descricao: str = _leaf('descricao')
    natureza_demanda: str = _leaf('naturezaDemanda')
    categoria_demanda: str = _leaf('categoriaDemanda')


@dataclass
class Justificativa:
    problema_detalhado: str = _leaf('problemaDetalhado')
    situacao_atual: str = _leaf('situacaoAtual')
    impacto: str = _leaf('impacto')
    beneficiarios: str = _leaf('beneficiarios')
    resultado_esperado: str = _leaf('resultadoEsperado')
    alinhamento_estrategico: str = _leaf('alinhamentoEstrategico')


@dataclass
class HipotesesSolucao:
    principal: str = _leaf('principal', A_DEFINIR)
    alternativas: str = _leaf('alternativas')
    experiencias_anteriores: str = _leaf('experienciasAnteriores')
    justificativa_escolha: str = _leaf('justificativaEscolha', A_DEFINIR)


@dataclass
class Requisitos:
    quantitativos: str = _leaf('quantitativos')
    especificacoes_tecnicas: str = _leaf('especificacoesTecnicas')
    localizacao: str = _leaf('localizacao')
    infraestrutura: str = _leaf('infraestrutura')


@dataclass
class Planejamento:
    prazo: str = _leaf('prazo', A_DEFINIR)
    orcamento: str = _leaf('orcamento', A_DEFINIR)
    fonte_recurso: str = _leaf('fonteRecurso', A_DEFINIR)
    gestor_fiscal: str = _leaf('gestorFiscal', A_DEFINIR)
    capacitacao: str = _leaf('capacitacao', A_DEFINIR)


@dataclass
class Riscos:
    nao_contratar: str = _leaf('naoContratar')
    da_contratacao: str = _leaf('daContratacao')
    legislacao: str = _leaf('legislacao')


# (chave JSON, atributo, classe)
SYNTHESIS_GROUPS = (
    ('identificacao', 'identificacao', Identificacao),
    ('necessidade', 'necessidade', Necessidade),
    ('justificativa', 'justificativa', Justificativa),
    ('hipotesesSolucao', 'hipoteses_solucao', HipotesesSolucao),
    ('requisitos', 'requisitos', Requisitos),
    ('planejamento', 'planejamento', Planejamento),
    ('riscos', 'riscos', Riscos),
)


def is_blank(value: Any) -> bool:
    """Vazio, só espaços ou um dos valores-sentinela"""
    if value is None:
        return True
    text = str(value).strip()
    return not text or text in SENTINELS


def _coerce_leaf(value: Any, default: str) -> str:
    if isinstance(value, list):
        value = "; ".join(str(item).strip() for item in value if str(item).strip())
    elif isinstance(value, dict):
        value = "; ".join(f"{k}: {v}" for k, v in value.items() if v not in (None, ""))
    elif isinstance(value, bool) or value is None:
        return default
    text = str(value).strip()
    return text if text else default


def _group_from_dict(cls, raw: Any):
    raw = raw if isinstance(raw, dict) else {}
    kwargs = {}
    for f in fields(cls):
        kwargs[f.name] = _coerce_leaf(raw.get(f.metadata['json']), f.default)
    return cls(**kwargs)


def _group_to_dict(group) -> Dict[str, str]:
    return {f.metadata['json']: getattr(group, f.name) for f in fields(group)}


@dataclass
class SynthesisData:
    identificacao: Identificacao = field(default_factory=Identificacao)
    necessidade: Necessidade = field(default_factory=Necessidade)
    justificativa: Justificativa = field(default_factory=Justificativa)
    hipoteses_solucao: HipotesesSolucao = field(default_factory=HipotesesSolucao)
    requisitos: Requisitos = field(default_factory=Requisitos)
    planejamento: Planejamento = field(default_factory=Planejamento)
    riscos: Riscos = field(default_factory=Riscos)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'SynthesisData':
        """Aplica a política de valores padrão a todas as folhas"""
        raw = raw if isinstance(raw, dict) else {}
        return cls(**{
            attr: _group_from_dict(group_cls, raw.get(json_key))
            for json_key, attr, group_cls in SYNTHESIS_GROUPS
        })

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {
            json_key: _group_to_dict(getattr(self, attr))
            for json_key, attr, _ in SYNTHESIS_GROUPS
        }
