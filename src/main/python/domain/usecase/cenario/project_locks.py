"""
Exclusão mútua por projeto: no máximo um turno em andamento por demanda.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict

logger = logging.getLogger(__name__)


class ConversationBusyError(Exception):
    """Outro turno do mesmo projeto ainda está em processamento"""

    def __init__(self, project_id):
        super().__init__(f"Projeto {project_id} já possui uma mensagem em processamento")
        self.project_id = project_id
        self.user_message = "Aguarde a resposta anterior antes de enviar outra mensagem."


class ProjectLockRegistry:
    """
    Um lock por projeto com turno em andamento. A entrada só existe enquanto o
    turno está ativo; criação e remoção acontecem sob o mesmo guard.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def is_busy(self, project_id) -> bool:
        with self._guard:
            lock = self._locks.get(str(project_id))
            return lock is not None and lock.locked()

    @contextmanager
    def hold(self, project_id):
        """
        Raises:
            ConversationBusyError: quando o projeto já está sendo processado
        """
        key = str(project_id)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            acquired = lock.acquire(blocking=False)
        if not acquired:
            logger.warning(f"[CENARIO] Turno concorrente recusado para projeto {project_id}")
            raise ConversationBusyError(project_id)
        try:
            yield
        finally:
            with self._guard:
                lock.release()
                self._locks.pop(key, None)


# Registro global do processo
project_locks = ProjectLockRegistry()
