# cotizador/quotes/guard.py
"""Single-slot token shared by the export and save actions."""

import threading
from contextlib import contextmanager

from cotizador.errors import BusyError


class InFlightGuard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.operation = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self, operation: str):
        """Hold the token for ``operation``; raise ``BusyError`` if taken."""
        if not self._lock.acquire(blocking=False):
            raise BusyError(f"Hay otra operación en curso ({self.operation})")
        self.operation = operation
        try:
            yield self
        finally:
            self.operation = None
            self._lock.release()
