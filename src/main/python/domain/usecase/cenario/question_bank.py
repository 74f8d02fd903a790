"""
Banco das 10 perguntas padrão do Agente Cenário.

Cada pergunta carrega uma categoria estável de informação essencial, usada para
marcar localmente os itens da rubrica à medida que as respostas chegam.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

FIXED_QUESTION_COUNT = 10
MAX_QUESTION_NUMBER = 20

# Categoria da pergunta -> itens da rubrica marcados quando respondida
CATEGORY_FLAGS: Dict[str, Tuple[str, ...]] = {
    'identificacao': ('identificacao',),
    'problema': ('problema',),
    'situacao_atual': ('problema',),
    'impacto': ('impacto',),
    'resultado': ('impacto',),
    'beneficiarios': ('beneficiarios',),
    'solucao_candidata': ('solucaoCandidata',),
    'quantitativos': ('quantitativos',),
    'planejamento': ('prazos', 'orcamento'),
}


def _profile_value(profile: Any, key: str) -> Optional[str]:
    if profile is None:
        return None
    if isinstance(profile, dict):
        value = profile.get(key)
    else:
        value = getattr(profile, key, None)
    if value is None or not str(value).strip():
        return None
    return str(value).strip()


def _excerpt(text: Optional[str], limit: int = 160) -> str:
    text = " ".join((text or "").split())
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def _q1(profile, title, previous):
    orgao = _profile_value(profile, 'orgao_demandante') or _profile_value(profile, 'orgao_nome') or '[sua secretaria]'
    return (
        "**Pergunta 1 de 10**\n\nPara garantir documentação correta:\n\n"
        f"**Esta demanda é de responsabilidade da {orgao}, correto?**\n\n"
        "Se for outro órgão ou secretaria, por favor me informe qual."
    )


def _q2(profile, title, previous):
    endereco = _profile_value(profile, 'endereco_completo') or '[endereço do cadastro]'
    return (
        "**Pergunta 2 de 10**\n\n**O local onde a solução será utilizada é:**\n"
        f"{endereco}\n\n"
        "Confirma? Se for outro local (prédio diferente, unidade), especifique."
    )


def _q3(profile, title, previous):
    return (
        "**Pergunta 3 de 10**\n\n"
        f"Você mencionou \"{title or '[título da demanda]'}\".\n\n"
        "**Descreva com mais detalhes o problema atual:**\n\n"
        "Para me ajudar:\n"
        "- Que equipamentos/sistemas/processos estão problemáticos?\n"
        "- Há quanto tempo essa situação existe?\n"
        "- Frequência do problema (diário, semanal, eventual)?"
    )


def _q4(profile, title, previous):
    context = f"Sobre o que você descreveu (\"{_excerpt(previous)}\"):\n\n" if previous else ""
    return (
        f"**Pergunta 4 de 10**\n\n{context}"
        "**Qual o impacto concreto desse problema no trabalho?**\n\n"
        "Pense em:\n"
        "- Tempo perdido (horas/dias por semana)\n"
        "- Tarefas que ficam paradas ou atrasadas\n"
        "- Reclamações formais (se houver)"
    )


def _q5(profile, title, previous):
    return (
        "**Pergunta 5 de 10**\n\n**Quem será diretamente beneficiado pela solução?**\n\n"
        "Especifique:\n"
        "- Quantos servidores/funcionários (aproximado)\n"
        "- Quais setores ou departamentos\n"
        "- Impacto no atendimento ao público (se houver)\n\n"
        "🎉 **Você completou metade das perguntas!**"
    )


def _q6(profile, title, previous):
    return (
        "**Pergunta 6 de 10**\n\n**Como vocês lidam com essa situação HOJE (antes da solução)?**\n\n"
        "Descreva:\n"
        "- Processos/métodos atuais (manual, planilha, sistema antigo)\n"
        "- Soluções temporárias que usam\n"
        "- O que já tentaram melhorar (se tentaram)"
    )


def _q7(profile, title, previous):
    return (
        "**Pergunta 7 de 10**\n\n**Qual resultado mensurável vocês esperam alcançar?**\n\n"
        "Exemplos:\n"
        "- Reduzir tempo de processo em X%\n"
        "- Eliminar paradas/reclamações\n"
        "- Aumentar produtividade\n"
        "- Atender mais Y pessoas por dia"
    )


def _q8(profile, title, previous):
    return (
        "**Pergunta 8 de 10** ⭐\n\nEsta é importante!\n\n"
        "**Vocês já têm alguma hipótese de solução em mente?**\n\n"
        "Pode ser:\n"
        "- Algo visto em outro órgão\n"
        "- Produto/serviço conhecido\n"
        "- Sugestão da equipe técnica\n"
        "- Ou está em aberto para o mercado propor\n\n"
        "Me conte o que já pensaram ou se preferem deixar em aberto."
    )


def _q9(profile, title, previous):
    context = f"Considerando a hipótese mencionada (\"{_excerpt(previous)}\"):\n\n" if previous else ""
    return (
        f"**Pergunta 9 de 10**\n\n{context}"
        "**Qual a quantidade estimada necessária?**\n\n"
        "Especifique (mesmo aproximado):\n"
        "- Quantidade total de itens/licenças/unidades\n"
        "- Previsão de crescimento futuro\n"
        "- Implantação de uma vez ou gradual"
    )


def _q10(profile, title, previous):
    return (
        "**Pergunta 10 de 10** ✨\n\nÚltima pergunta desta etapa!\n\n"
        "**Sobre prazos e recursos:**\n\n"
        "a) **Prazo:** Quando precisam que esteja funcionando? "
        "Há marco crítico (fim de ano, evento, prazo legal)?\n\n"
        "b) **Orçamento:** Há recurso aprovado/previsto? Se sim, faixa de valor ou rubrica?\n\n"
        "Responda ambos os pontos.\n\n"
        "🎉 **Você concluiu as 10 perguntas padrão!**"
    )


@dataclass(frozen=True)
class FixedQuestion:
    number: int
    category: str
    template: Callable[[Any, Optional[str], Optional[str]], str]


STANDARD_QUESTIONS: Tuple[FixedQuestion, ...] = (
    FixedQuestion(1, 'identificacao', _q1),
    FixedQuestion(2, 'identificacao', _q2),
    FixedQuestion(3, 'problema', _q3),
    FixedQuestion(4, 'impacto', _q4),
    FixedQuestion(5, 'beneficiarios', _q5),
    FixedQuestion(6, 'situacao_atual', _q6),
    FixedQuestion(7, 'resultado', _q7),
    FixedQuestion(8, 'solucao_candidata', _q8),
    FixedQuestion(9, 'quantitativos', _q9),
    FixedQuestion(10, 'planejamento', _q10),
)

_BY_NUMBER = {q.number: q for q in STANDARD_QUESTIONS}


def get_fixed_question(
    question_number: int,
    profile: Any,
    demanda_title: str,
    previous_answer: Optional[str] = None,
) -> str:
    """
    Retorna o texto da pergunta padrão de número 1..10.
    Fora do intervalo devolve uma mensagem-sentinela; quem chama deve validar o intervalo.
    """
    question = _BY_NUMBER.get(question_number)
    if question is None:
        return f"Pergunta {question_number} não encontrada."
    return question.template(profile, demanda_title, previous_answer)


def category_for(question_number: int) -> Optional[str]:
    question = _BY_NUMBER.get(question_number)
    return question.category if question else None


def essential_flags_for(question_number: int) -> Tuple[str, ...]:
    """Itens da rubrica cobertos pela resposta a uma pergunta padrão"""
    return CATEGORY_FLAGS.get(category_for(question_number), ())
