"""
Reentrancy guard for pair entry points.
"""
import logging
import threading
from contextlib import contextmanager

from amm_v2.errors import ReentrancyError

logger = logging.getLogger(__name__)


class ConcurrencyGuard:
    """
    One exclusive lock per pair.

    Acquisition never waits: a second entry while the lock is held, whether
    from a callback on the same thread or from another thread, fails at once
    with ReentrancyError.
    """

    def __init__(self, name: str = "pair"):
        self.name = name
        self._lock = threading.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self, operation: str = ""):
        if not self._lock.acquire(blocking=False):
            logger.warning(f"{self.name}: rejected reentrant call to {operation or 'operation'}")
            raise ReentrancyError(f"{self.name}: LOCKED")
        try:
            yield
        finally:
            self._lock.release()

