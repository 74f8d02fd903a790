import os
import sys
import threading
import unittest

# Add src path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src', 'main', 'python'))

from domain.usecase.cenario.project_locks import ConversationBusyError, ProjectLockRegistry


class TestProjectLockRegistry(unittest.TestCase):

    def setUp(self):
        self.registry = ProjectLockRegistry()

    def test_second_turn_on_same_project_is_refused(self):
        with self.registry.hold('p1'):
            self.assertTrue(self.registry.is_busy('p1'))
            with self.assertRaises(ConversationBusyError) as ctx:
                with self.registry.hold('p1'):
                    pass
        self.assertEqual(ctx.exception.project_id, 'p1')
        self.assertIn("Aguarde", ctx.exception.user_message)
        self.assertFalse(self.registry.is_busy('p1'))

    def test_other_projects_are_independent(self):
        with self.registry.hold('p1'):
            with self.registry.hold('p2'):
                self.assertTrue(self.registry.is_busy('p2'))

    def test_lock_released_after_exception(self):
        with self.assertRaises(RuntimeError):
            with self.registry.hold('p1'):
                raise RuntimeError("falha no turno")
        self.assertFalse(self.registry.is_busy('p1'))

    def test_released_projects_are_forgotten(self):
        for n in range(50):
            with self.registry.hold(f'p{n}'):
                self.assertEqual(len(self.registry), 1)
        self.assertEqual(len(self.registry), 0)
        self.assertFalse(self.registry.is_busy('p0'))

    def test_refused_turn_keeps_holder_registered(self):
        with self.registry.hold('p1'):
            with self.assertRaises(ConversationBusyError):
                with self.registry.hold('p1'):
                    pass
            self.assertTrue(self.registry.is_busy('p1'))
            self.assertEqual(len(self.registry), 1)
        self.assertEqual(len(self.registry), 0)

    def test_refused_across_threads(self):
        entered = threading.Event()
        release = threading.Event()

        def worker():
            with self.registry.hold('p1'):
                entered.set()
                release.wait(5)

        thread = threading.Thread(target=worker)
        thread.start()
        try:
            self.assertTrue(entered.wait(5))
            with self.assertRaises(ConversationBusyError):
                with self.registry.hold('p1'):
                    pass
        finally:
            release.set()
            thread.join(5)

        with self.registry.hold('p1'):
            pass


if __name__ == '__main__':
    unittest.main()
