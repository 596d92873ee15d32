import threading
import time
from datetime import datetime
from typing import Callable, Optional


def system_millis() -> int:
    """Wall-clock milliseconds since the epoch."""
    return time.time_ns() // 1_000_000


class LogicalClock:
    """
    Wall-clock reference plus an accumulated signed offset (milliseconds).
    The offset is only ever changed through ``adjust`` once constructed.
    """

    def __init__(self, initial_offset: int = 0, reference: Optional[Callable[[], int]] = None):
        self._reference = reference or system_millis
        self._offset = int(initial_offset)
        self._lock = threading.Lock()

    def now(self) -> int:
        """Current logical time in milliseconds since the epoch"""
        with self._lock:
            offset = self._offset
        return self._reference() + offset

    def adjust(self, delta: int) -> None:
        """Atomically add a signed delta to the offset"""
        with self._lock:
            self._offset += int(delta)

    def offset(self) -> int:
        with self._lock:
            return self._offset

    def pretty_now(self) -> str:
        millis = self.now()
        stamp = datetime.fromtimestamp(millis // 1000)
        return f"{stamp:%H:%M:%S}.{millis % 1000:03d}"

    def __repr__(self) -> str:
        return f"LogicalClock(now={self.pretty_now()}, offset={self.offset()} ms)"
