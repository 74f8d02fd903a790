import os
import sys
import unittest

# Add src path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src', 'main', 'python'))

from cenario_fakes import (
    ALL_KEYS,
    GOOD_ANSWER,
    PROFILE,
    ScriptedGateway,
    adaptive_text,
    monitor_json,
)
from application.ai.gateway import AIGatewayError
from domain.usecase.cenario.conversation_orchestrator import (
    ConversationOrchestrator,
    InMemoryConversationStore,
)

PHASE_ORDER = {'questions': 0, 'synthesis': 1, 'complete': 2}
INCOMPLETE = monitor_json(present=ALL_KEYS[:4], score=50, missing=['Orçamento', 'Prazos'])


class _BrokenStore:
    def append_message(self, project_id, message):
        raise RuntimeError("banco indisponível")

    def save_state(self, project_id, state, synthesis):
        raise RuntimeError("banco indisponível")


class OrchestratorTestCase(unittest.TestCase):

    def setUp(self):
        self.gateway = ScriptedGateway()
        self.store = InMemoryConversationStore()

    def _orchestrator(self, store=None):
        orchestrator = ConversationOrchestrator(
            project_id='p1',
            profile=PROFILE,
            demanda_title='Modernização do atendimento',
            gateway=self.gateway,
            store=store if store is not None else self.store,
        )
        orchestrator.start()
        return orchestrator

    def _answer(self, orchestrator, times, text=GOOD_ANSWER):
        return [orchestrator.handle_user_message(text) for _ in range(times)]


class TestStart(OrchestratorTestCase):

    def test_start_sends_first_question_once(self):
        orchestrator = self._orchestrator()
        self.assertEqual(len(orchestrator.messages), 1)
        self.assertIn("Pergunta 1 de 10", orchestrator.messages[0].content)
        self.assertIn("Secretaria de Saúde", orchestrator.messages[0].content)
        self.assertEqual(orchestrator.state.current_question_number, 1)

        self.assertIsNone(orchestrator.start())
        self.assertEqual(len(orchestrator.messages), 1)
        self.assertEqual(len(self.store.messages['p1']), 1)
        self.assertEqual(self.gateway.calls, [])

    def test_empty_message_rejected(self):
        orchestrator = self._orchestrator()
        with self.assertRaises(ValueError):
            orchestrator.handle_user_message("   ")


class TestStandardQuestions(OrchestratorTestCase):

    def test_good_answers_advance_and_mark_flags(self):
        orchestrator = self._orchestrator()
        results = self._answer(orchestrator, 3)

        self.assertEqual(orchestrator.state.current_question_number, 4)
        self.assertIn("Pergunta 4 de 10", results[-1].messages[-1].content)
        self.assertEqual(orchestrator.state.answered_questions, [1, 2, 3])
        self.assertTrue(orchestrator.state.essential_info['identificacao'])
        self.assertTrue(orchestrator.state.essential_info['problema'])
        self.assertFalse(orchestrator.state.essential_info['orcamento'])

    def test_short_answer_asks_for_elaboration_without_advancing(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 2)

        result = orchestrator.handle_user_message("sim")

        self.assertEqual(orchestrator.state.current_question_number, 3)
        self.assertEqual(self.gateway.count('validate_response'), 1)
        user_message, reply = result.messages
        self.assertFalse(user_message.metadata['accepted'])
        self.assertEqual(reply.metadata['kind'], 'elaboration')
        self.assertEqual(reply.content, "Poderia detalhar melhor sua resposta com exemplos?")
        self.assertIn('sim', self.gateway.calls[-1]['system_prompt'])

    def test_vague_answer_asks_for_elaboration(self):
        orchestrator = self._orchestrator()
        orchestrator.handle_user_message("não sei bem, talvez umas cinquenta")
        self.assertEqual(orchestrator.state.current_question_number, 1)
        self.assertEqual(self.gateway.count('validate_response'), 1)

    def test_milestone_every_five_questions(self):
        orchestrator = self._orchestrator()
        results = self._answer(orchestrator, 5)
        self.assertEqual([r.milestone for r in results], [None, None, None, None, 5])

    def test_opportunistic_monitor_on_even_user_messages(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 1)
        self.assertEqual(self.gateway.count('monitor_completeness'), 0)
        self._answer(orchestrator, 1)
        self.assertEqual(self.gateway.count('monitor_completeness'), 1)
        self.assertIsNotNone(orchestrator.state.completeness)


class TestScenarios(OrchestratorTestCase):

    def test_scenario_a_enters_adaptive_phase(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 9)
        monitor_before = self.gateway.count('monitor_completeness')

        result = orchestrator.handle_user_message(GOOD_ANSWER)

        self.assertEqual(self.gateway.count('monitor_completeness') - monitor_before, 1)
        self.assertEqual(self.gateway.count('adaptive_questions'), 1)
        self.assertEqual(result.milestone, 10)
        self.assertEqual(orchestrator.state.current_question_number, 11)
        self.assertTrue(orchestrator.state.adaptive_generated)
        self.assertEqual(len(orchestrator.state.adaptive_questions), 2)
        self.assertTrue(result.messages[-1].content.startswith("**Pergunta 11"))
        self.assertEqual(result.messages[-1].metadata['kind'], 'adaptive_question')

    def test_adaptive_generator_sees_only_accepted_answers(self):
        orchestrator = self._orchestrator()
        orchestrator.handle_user_message("ok")
        self._answer(orchestrator, 10)

        prompt = self.gateway.calls[-1]['transcript'][0].content
        self.assertEqual(self.gateway.calls[-1]['phase'], 'adaptive_questions')
        self.assertIn("P10:", prompt)
        self.assertNotIn("P11:", prompt)
        self.assertNotIn("P1: ok", prompt)

    def test_scenario_b_no_adaptive_questions_goes_to_synthesis(self):
        self.gateway.push('adaptive_questions', "Nenhuma lacuna identificada.")
        orchestrator = self._orchestrator()

        results = self._answer(orchestrator, 10)

        contents = [m.content for m in results[-1].messages]
        self.assertTrue(any("Coleta concluída" in c for c in contents))
        self.assertTrue(any("Síntese concluída" in c for c in contents))
        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertEqual(self.gateway.count('synthesis'), 1)
        self.assertIsNotNone(orchestrator.synthesis)
        self.assertEqual(orchestrator.synthesis.identificacao.responsavel, 'Maria Souza')
        self.assertIn('p1', self.store.syntheses)
        self.assertTrue(self.store.states['p1']['complete'])

    def test_scenario_c_incomplete_then_proceed(self):
        self.gateway.defaults['monitor_completeness'] = INCOMPLETE
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 10)
        self._answer(orchestrator, 1)
        self.assertEqual(orchestrator.state.current_question_number, 12)

        result = orchestrator.handle_user_message(GOOD_ANSWER)

        warning = result.messages[-1].content
        self.assertIn("Faltam: Orçamento, Prazos", warning)
        self.assertIn("1. Responder perguntas adicionais", warning)
        self.assertIn("2. Prosseguir assim", warning)
        self.assertTrue(orchestrator.state.awaiting_finalize_decision)
        self.assertEqual(orchestrator.state.phase, 'questions')
        self.assertEqual(self.gateway.count('synthesis'), 0)

        result = orchestrator.handle_user_message("2")

        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertFalse(orchestrator.state.awaiting_finalize_decision)
        self.assertIsNotNone(result.synthesis)
        self.assertIn("Síntese concluída", result.messages[-1].content)

    def test_scenario_c_incomplete_then_more_questions(self):
        self.gateway.defaults['monitor_completeness'] = INCOMPLETE
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 12)
        self.assertTrue(orchestrator.state.awaiting_finalize_decision)

        self.gateway.push('adaptive_questions', adaptive_text(3, first=13))
        result = orchestrator.handle_user_message("1")

        self.assertFalse(orchestrator.state.awaiting_finalize_decision)
        self.assertEqual(orchestrator.state.current_question_number, 13)
        self.assertEqual(len(orchestrator.state.adaptive_questions), 5)
        self.assertTrue(result.messages[-1].content.startswith("**Pergunta 13"))

    def test_decision_unrecognized_reasks_without_ai(self):
        self.gateway.defaults['monitor_completeness'] = INCOMPLETE
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 12)
        calls_before = len(self.gateway.calls)

        result = orchestrator.handle_user_message("hum")

        self.assertTrue(orchestrator.state.awaiting_finalize_decision)
        self.assertEqual(result.messages[-1].metadata['kind'], 'decision_prompt')
        self.assertEqual(len(self.gateway.calls), calls_before)

    def test_scenario_d_synthesis_failure_rolls_back(self):
        self.gateway.push('adaptive_questions', "Nenhuma lacuna identificada.")
        self.gateway.push('synthesis', AIGatewayError("timeout"))
        orchestrator = self._orchestrator()

        results = self._answer(orchestrator, 10)

        self.assertEqual(orchestrator.state.phase, 'questions')
        self.assertIsNone(orchestrator.synthesis)
        self.assertEqual(results[-1].messages[-1].content, "Falha ao gerar síntese. Tente novamente.")
        self.assertEqual(results[-1].messages[-1].metadata['kind'], 'synthesis_error')

        retry = orchestrator.finalize_collection()
        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertIsNotNone(retry.synthesis)

    def test_complete_phase_replies_without_ai(self):
        self.gateway.push('adaptive_questions', "Nenhuma lacuna identificada.")
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 10)
        calls_before = len(self.gateway.calls)

        result = orchestrator.handle_user_message("ok")

        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertIn("já foi concluído", result.messages[-1].content)
        self.assertEqual(len(self.gateway.calls), calls_before)

    def test_full_run_phase_and_question_number_never_regress(self):
        self.gateway.defaults['adaptive_questions'] = adaptive_text(10)
        orchestrator = self._orchestrator()
        last_phase, last_number = 0, 0

        for _ in range(25):
            if orchestrator.state.phase == 'complete':
                break
            orchestrator.handle_user_message(GOOD_ANSWER)
            phase = PHASE_ORDER[orchestrator.state.phase]
            self.assertGreaterEqual(phase, last_phase)
            self.assertGreaterEqual(orchestrator.state.current_question_number, last_number)
            self.assertLessEqual(orchestrator.state.current_question_number, 20)
            last_phase, last_number = phase, orchestrator.state.current_question_number

        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertEqual(orchestrator.state.current_question_number, 20)


class TestFinalizeCollection(OrchestratorTestCase):

    def test_finalize_during_fixed_questions_only_warns(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 2)
        calls_before = len(self.gateway.calls)

        result = orchestrator.finalize_collection()

        self.assertEqual(result.messages[-1].metadata['kind'], 'notice')
        self.assertIn("pergunta 10", result.messages[-1].content)
        self.assertEqual(orchestrator.state.phase, 'questions')
        self.assertEqual(orchestrator.state.current_question_number, 3)
        self.assertFalse(orchestrator.state.awaiting_finalize_decision)
        self.assertEqual(len(self.gateway.calls), calls_before)

    def test_reply_after_early_finalize_continues_fixed_questions(self):
        self.gateway.defaults['monitor_completeness'] = INCOMPLETE
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 2)
        orchestrator.finalize_collection()

        orchestrator.handle_user_message("1")
        self.assertEqual(orchestrator.state.current_question_number, 3)

        result = orchestrator.handle_user_message(GOOD_ANSWER)
        self.assertEqual(orchestrator.state.current_question_number, 4)
        self.assertIn("Pergunta 4 de 10", result.messages[-1].content)
        self.assertEqual(self.gateway.count('adaptive_questions'), 0)

    def test_finalize_in_adaptive_phase_runs_synthesis(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 10)
        self.assertEqual(orchestrator.state.current_question_number, 11)

        result = orchestrator.finalize_collection()

        self.assertEqual(orchestrator.state.phase, 'complete')
        self.assertIsNotNone(result.synthesis)
        self.assertEqual(self.gateway.count('synthesis'), 1)


class TestTransactionalTurn(OrchestratorTestCase):

    def test_gateway_error_leaves_state_untouched(self):
        orchestrator = self._orchestrator()
        self._answer(orchestrator, 2)
        snapshot = orchestrator.state.to_snapshot()
        message_count = len(orchestrator.messages)
        stored_count = len(self.store.messages['p1'])

        self.gateway.push('validate_response', AIGatewayError("fora do ar"))
        with self.assertRaises(AIGatewayError):
            orchestrator.handle_user_message("curta")

        self.assertEqual(orchestrator.state.to_snapshot(), snapshot)
        self.assertEqual(len(orchestrator.messages), message_count)
        self.assertEqual(len(self.store.messages['p1']), stored_count)

        # o mesmo turno pode ser reenviado
        result = orchestrator.handle_user_message("curta")
        self.assertEqual(result.messages[-1].metadata['kind'], 'elaboration')

    def test_persistence_failure_is_soft(self):
        orchestrator = self._orchestrator(store=_BrokenStore())
        result = orchestrator.handle_user_message(GOOD_ANSWER)

        self.assertEqual(orchestrator.state.current_question_number, 2)
        self.assertEqual(len(orchestrator.messages), 3)
        self.assertEqual(len(result.messages), 2)


if __name__ == '__main__':
    unittest.main()
