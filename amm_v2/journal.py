"""
Undo journal shared by ledgers and pairs.

Every mutation made while a scope is open records how to put the old value
back. When a scope fails, exactly the mutations recorded inside it are
undone, newest first, whichever ledger or pair they touched. Other entries
on the same ledgers are left alone.

Scopes nest. A nested scope that succeeds keeps its entries, so an
enclosing scope that fails later still reverts them. Deferred actions
(event publication) run only when the outermost scope succeeds.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Callable

logger = logging.getLogger(__name__)


class Journal:
    """Per-thread undo log."""

    def __init__(self):
        self._local = threading.local()

    def _frame(self):
        local = self._local
        if not hasattr(local, 'undo'):
            local.undo = []
            local.deferred = []
            local.depth = 0
        return local

    @property
    def active(self) -> bool:
        return self._frame().depth > 0

    def record(self, undo: Callable[[], None]):
        """Remember how to revert one mutation. No-op outside a scope."""
        frame = self._frame()
        if frame.depth:
            frame.undo.append(undo)

    def defer(self, action: Callable[[], None]):
        """Run `action` once the outermost scope has succeeded."""
        frame = self._frame()
        if frame.depth:
            frame.deferred.append(action)
        else:
            action()

    @contextmanager
    def scope(self):
        frame = self._frame()
        undo_mark = len(frame.undo)
        deferred_mark = len(frame.deferred)
        frame.depth += 1
        try:
            yield
        except Exception:
            reverted = len(frame.undo) - undo_mark
            while len(frame.undo) > undo_mark:
                frame.undo.pop()()
            del frame.deferred[deferred_mark:]
            if reverted:
                logger.debug(f"Reverted {reverted} journaled changes")
            raise
        finally:
            frame.depth -= 1

        if frame.depth == 0:
            actions, frame.deferred = frame.deferred, []
            frame.undo = []
            for action in actions:
                action()


# Ledgers and pairs created without an explicit journal share this one, so
# an operation on one pair can revert what its callbacks did elsewhere.
JOURNAL = Journal()
