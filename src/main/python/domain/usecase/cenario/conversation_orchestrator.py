"""
Orquestrador da conversa do Agente Cenário.

Conduz as 10 perguntas padrão, as perguntas adaptativas, a verificação de
completude e a síntese final. Cada turno trabalha sobre uma cópia do estado
e só é aplicado (e persistido) quando termina sem erro de IA.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from application.ai.prompts import build_validation_prompt
from application.config.ai_config import get_ai_config
from domain.usecase.cenario.adaptive_questions import AdaptiveQuestionGenerator
from domain.usecase.cenario.completeness_monitor import CompletenessMonitor
from domain.usecase.cenario.question_bank import (
    FIXED_QUESTION_COUNT,
    MAX_QUESTION_NUMBER,
    essential_flags_for,
    get_fixed_question,
)
from domain.usecase.cenario.response_validator import needs_elaboration
from domain.usecase.cenario.state_machine import (
    DECISION_CONTINUE,
    DECISION_PROCEED,
    ConversationState,
    parse_finalize_decision,
)
from domain.usecase.cenario.synthesis_service import SynthesisFailure, SynthesisService
from domain.usecase.cenario.types import CompletenessStatus, Message, SynthesisData

logger = logging.getLogger(__name__)

MILESTONE_INTERVAL = 5

COLLECTION_COMPLETE_MESSAGE = (
    "✅ **Coleta concluída!**\n\nTodas informações essenciais coletadas. Processando...\n\nAguarde."
)
SYNTHESIS_COMPLETE_MESSAGE = (
    "✅ **Síntese concluída!**\n\n**Próximos passos:**\n- Baixar Relatório .docx\n"
    "- Visualizar Síntese\n- Prosseguir para Requisitos\n\nUse os botões abaixo."
)
ALREADY_COMPLETE_MESSAGE = (
    "✅ O Relatório de Cenário desta demanda já foi concluído.\n\n"
    "Você pode baixar o relatório .docx, visualizar a síntese ou prosseguir para Requisitos."
)
DECISION_REPROMPT_MESSAGE = (
    "Não entendi sua escolha. Responda com o número da opção:\n\n"
    "1. Responder perguntas adicionais\n2. Prosseguir assim (complementar depois)"
)
FINALIZE_TOO_EARLY_MESSAGE = (
    "Ainda há perguntas padrão a responder. A finalização fica disponível depois da pergunta 10."
)
NO_MORE_QUESTIONS_MESSAGE = (
    "Não há novas perguntas a fazer no momento. Vou prosseguir com a síntese do cenário."
)


def incomplete_warning(status: CompletenessStatus) -> str:
    missing = ", ".join(status.missing_critical) or "informações essenciais"
    return (
        f"⚠️ **Atenção:** Faltam: {missing}.\n\n**Opções:**\n1. Responder perguntas adicionais\n"
        "2. Prosseguir assim (complementar depois)\n\nO que prefere?"
    )


class InMemoryConversationStore:
    """Store usado em testes e execuções sem banco"""

    def __init__(self):
        self.messages: Dict[Any, List[Message]] = {}
        self.states: Dict[Any, Dict[str, Any]] = {}
        self.syntheses: Dict[Any, SynthesisData] = {}

    def append_message(self, project_id, message: Message) -> None:
        self.messages.setdefault(project_id, []).append(message)

    def save_state(self, project_id, state: ConversationState, synthesis: Optional[SynthesisData]) -> None:
        self.states[project_id] = state.to_snapshot()
        if synthesis is not None:
            self.syntheses[project_id] = synthesis


@dataclass
class TurnResult:
    messages: List[Message]
    state: ConversationState
    synthesis: Optional[SynthesisData] = None
    milestone: Optional[int] = None
    completeness: Optional[CompletenessStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'messages': [message_to_dict(m) for m in self.messages],
            'state': self.state.to_snapshot(),
            'milestone': self.milestone,
            'completeness': self.completeness.to_dict() if self.completeness else None,
            'synthesis_ready': self.synthesis is not None,
        }


def message_to_dict(message: Message) -> Dict[str, Any]:
    return {
        'role': message.role,
        'content': message.content,
        'created_at': message.created_at.isoformat() if message.created_at else None,
        'metadata': dict(message.metadata or {}),
    }


@dataclass
class _Turn:
    """Cópia de trabalho de um turno; descartada se a IA falhar"""
    state: ConversationState
    synthesis: Optional[SynthesisData]
    history: List[Message]
    pending: List[Message] = field(default_factory=list)
    monitor_ran: bool = False
    milestone: Optional[int] = None

    @property
    def transcript(self) -> List[Message]:
        return self.history + self.pending


class ConversationOrchestrator:

    def __init__(
        self,
        project_id,
        profile: Any,
        demanda_title: str,
        gateway,
        store=None,
        messages: Optional[Iterable[Message]] = None,
        state: Optional[ConversationState] = None,
        synthesis: Optional[SynthesisData] = None,
        monitor: Optional[CompletenessMonitor] = None,
        adaptive_generator: Optional[AdaptiveQuestionGenerator] = None,
        synthesis_service: Optional[SynthesisService] = None,
    ):
        self.project_id = project_id
        self.profile = profile
        self.demanda_title = demanda_title
        self.gateway = gateway
        self.store = store if store is not None else InMemoryConversationStore()
        self.messages: List[Message] = list(messages or [])
        self.state = state if state is not None else ConversationState()
        self.synthesis = synthesis
        self.monitor = monitor or CompletenessMonitor(gateway)
        self.adaptive_generator = adaptive_generator or AdaptiveQuestionGenerator(gateway)
        self.synthesis_service = synthesis_service or SynthesisService(gateway)

    # ------------------------------------------------------------------
    # Operações públicas
    # ------------------------------------------------------------------

    def start(self) -> Optional[Message]:
        """Envia a pergunta 1 quando o histórico está vazio; caso contrário não faz nada"""
        if self.messages:
            return None

        turn = self._begin_turn()
        self._ask_fixed_question(turn, 1, previous_answer=None)
        self._commit(turn)
        logger.info(f"[CENARIO] Projeto {self.project_id}: conversa iniciada")
        return turn.pending[0]

    def handle_user_message(self, text: str) -> TurnResult:
        """
        Processa uma mensagem do usuário e produz a(s) resposta(s) do agente.

        Raises:
            ValueError: mensagem vazia
            AIGatewayError: falha transitória de IA; nada é persistido e o estado não muda
        """
        text = (text or "").strip()
        if not text:
            raise ValueError("Mensagem vazia")

        turn = self._begin_turn()
        user_message = Message(role='user', content=text, metadata={
            'phase': turn.state.phase,
            'question_number': turn.state.current_question_number,
            'kind': 'answer',
            'accepted': False,
        })
        turn.pending.append(user_message)

        self._route(turn, user_message)
        self._periodic_check(turn)
        self._commit(turn)

        return TurnResult(
            messages=list(turn.pending),
            state=self.state,
            synthesis=self.synthesis,
            milestone=turn.milestone,
            completeness=self.state.completeness,
        )

    def finalize_collection(self) -> TurnResult:
        """
        Finalização explícita (também serve para repetir a síntese após falha).
        Antes do fim das perguntas padrão apenas avisa, sem avançar a conversa.
        """
        turn = self._begin_turn()
        if turn.state.phase == 'complete':
            self._reply(turn, ALREADY_COMPLETE_MESSAGE, kind='complete_notice')
        elif not self._can_finalize(turn.state):
            self._reply(turn, FINALIZE_TOO_EARLY_MESSAGE, kind='notice')
        else:
            turn.state.awaiting_finalize_decision = False
            self._finalize(turn)
        self._commit(turn)
        return TurnResult(
            messages=list(turn.pending),
            state=self.state,
            synthesis=self.synthesis,
            completeness=self.state.completeness,
        )

    # ------------------------------------------------------------------
    # Transições
    # ------------------------------------------------------------------

    def _route(self, turn: _Turn, user_message: Message) -> None:
        state = turn.state
        text = user_message.content

        if state.phase == 'complete':
            user_message.metadata['kind'] = 'after_complete'
            self._reply(turn, ALREADY_COMPLETE_MESSAGE, kind='complete_notice')
            return

        if state.awaiting_finalize_decision:
            user_message.metadata['kind'] = 'decision'
            decision = parse_finalize_decision(text)
            if decision == DECISION_CONTINUE:
                state.awaiting_finalize_decision = False
                self._request_more_questions(turn)
            elif decision == DECISION_PROCEED:
                state.awaiting_finalize_decision = False
                self._synthesize(turn)
            else:
                self._reply(turn, DECISION_REPROMPT_MESSAGE, kind='decision_prompt')
            return

        if needs_elaboration(text):
            user_message.metadata['kind'] = 'needs_elaboration'
            self._ask_for_elaboration(turn, text)
            return

        user_message.metadata['accepted'] = True
        current = state.current_question_number
        state.mark_answered(current, essential_flags_for(current))
        if current and current <= FIXED_QUESTION_COUNT and current % MILESTONE_INTERVAL == 0:
            turn.milestone = current

        if current < FIXED_QUESTION_COUNT:
            self._ask_fixed_question(turn, current + 1, previous_answer=text)
        elif current == FIXED_QUESTION_COUNT and not state.adaptive_generated:
            self._enter_adaptive_phase(turn)
        else:
            next_question = state.next_adaptive_question()
            if next_question is not None:
                self._ask_adaptive_question(turn, next_question)
            else:
                self._finalize(turn)

    def _ask_fixed_question(self, turn: _Turn, number: int, previous_answer: Optional[str]) -> None:
        question = get_fixed_question(number, self.profile, self.demanda_title, previous_answer)
        turn.state.advance_question(number)
        self._reply(turn, question, kind='fixed_question', question_number=number)

    def _ask_adaptive_question(self, turn: _Turn, question: str) -> None:
        number = max(turn.state.current_question_number, FIXED_QUESTION_COUNT) + 1
        turn.state.advance_question(number)
        self._reply(turn, question, kind='adaptive_question', question_number=number)

    def _ask_for_elaboration(self, turn: _Turn, text: str) -> None:
        # erro de IA aqui propaga: o turno é descartado e pode ser reenviado
        phase = 'validate_response'
        response = self.gateway.call_model(
            turn.transcript,
            phase=phase,
            system_prompt=build_validation_prompt(text),
        )
        self._reply(turn, response, kind='elaboration', model=get_ai_config(phase).model)

    def _enter_adaptive_phase(self, turn: _Turn) -> None:
        status = self._run_monitor(turn)
        questions = self.adaptive_generator.generate(self._accepted_answers(turn), status)
        turn.state.adaptive_questions = questions
        turn.state.adaptive_generated = True
        logger.info(f"[CENARIO] Projeto {self.project_id}: {len(questions)} perguntas adaptativas")

        if questions:
            self._ask_adaptive_question(turn, questions[0])
        else:
            self._finalize(turn)

    def _request_more_questions(self, turn: _Turn) -> None:
        state = turn.state
        asked = max(state.current_question_number, FIXED_QUESTION_COUNT)
        remaining_slots = MAX_QUESTION_NUMBER - asked
        if remaining_slots <= 0:
            self._reply(turn, NO_MORE_QUESTIONS_MESSAGE, kind='notice')
            self._synthesize(turn)
            return

        status = state.completeness or CompletenessStatus.default()
        questions = self.adaptive_generator.generate(
            self._accepted_answers(turn),
            status,
            max_questions=remaining_slots,
            first_number=asked + 1,
        )
        if not questions:
            self._reply(turn, NO_MORE_QUESTIONS_MESSAGE, kind='notice')
            self._synthesize(turn)
            return

        state.adaptive_questions = state.adaptive_questions[:asked - FIXED_QUESTION_COUNT] + questions
        state.adaptive_generated = True
        self._ask_adaptive_question(turn, questions[0])

    def _finalize(self, turn: _Turn) -> None:
        status = self._run_monitor(turn)
        if not status.is_complete:
            turn.state.awaiting_finalize_decision = True
            self._reply(turn, incomplete_warning(status), kind='finalize_warning')
            return

        self._reply(turn, COLLECTION_COMPLETE_MESSAGE, kind='collection_complete')
        self._synthesize(turn)

    def _synthesize(self, turn: _Turn) -> None:
        state = turn.state
        state.transition('synthesis')
        try:
            synthesis = self.synthesis_service.synthesize(turn.transcript, self.profile)
        except SynthesisFailure as e:
            logger.error(f"[CENARIO] Projeto {self.project_id}: síntese falhou, voltando para perguntas")
            state.transition('questions')
            self._reply(turn, e.user_message, kind='synthesis_error')
            return

        turn.synthesis = synthesis
        state.transition('complete')
        self._reply(turn, SYNTHESIS_COMPLETE_MESSAGE, kind='synthesis_complete')

    def _periodic_check(self, turn: _Turn) -> None:
        if turn.monitor_ran or turn.state.phase != 'questions':
            return
        user_count = sum(1 for m in turn.transcript if m.role == 'user')
        if user_count and user_count % 2 == 0:
            self._run_monitor(turn)

    # ------------------------------------------------------------------
    # Auxiliares
    # ------------------------------------------------------------------

    @staticmethod
    def _can_finalize(state: ConversationState) -> bool:
        # a fase adaptativa (e qualquer falha de síntese) só existe após a pergunta 10
        return state.current_question_number >= FIXED_QUESTION_COUNT and state.adaptive_generated

    def _run_monitor(self, turn: _Turn) -> CompletenessStatus:
        status = self.monitor.monitor(turn.transcript)
        turn.state.completeness = status
        turn.monitor_ran = True
        return status

    @staticmethod
    def _accepted_answers(turn: _Turn) -> List[Message]:
        users = [m for m in turn.transcript if m.role == 'user']
        accepted = [m for m in users if (m.metadata or {}).get('accepted')]
        # históricos sem metadados usam todas as mensagens do usuário
        if accepted or any('accepted' in (m.metadata or {}) for m in users):
            return accepted
        return users

    def _reply(self, turn: _Turn, content: str, kind: str, question_number: Optional[int] = None,
               model: Optional[str] = None) -> Message:
        metadata = {
            'phase': turn.state.phase,
            'question_number': question_number if question_number is not None else turn.state.current_question_number,
            'kind': kind,
        }
        if model:
            metadata['model'] = model
        message = Message(role='assistant', content=content, metadata=metadata)
        turn.pending.append(message)
        return message

    def _begin_turn(self) -> _Turn:
        return _Turn(state=self.state.copy(), synthesis=self.synthesis, history=list(self.messages))

    def _commit(self, turn: _Turn) -> None:
        self.messages.extend(turn.pending)
        self.state = turn.state
        self.synthesis = turn.synthesis

        for message in turn.pending:
            try:
                self.store.append_message(self.project_id, message)
            except Exception as e:
                logger.error(f"[CENARIO] Falha ao persistir mensagem do projeto {self.project_id}: {e}")
        try:
            self.store.save_state(self.project_id, self.state, self.synthesis)
        except Exception as e:
            logger.error(f"[CENARIO] Falha ao persistir estado do projeto {self.project_id}: {e}")
