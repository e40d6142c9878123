"""Guarded in-memory usage state."""

import threading
from typing import Optional

from bytetally.tracker.scheduler import ScheduledTask


class UsageState:
    """Bytes sent so far plus the handle of the one pending write.

    Every read or write of ``bytes_sent`` and ``pending_write`` must happen
    while holding ``lock``.  Callers use ``with state.lock:`` and then the
    plain attributes; this class does not lock on its own.
    """

    __slots__ = ("lock", "bytes_sent", "pending_write")

    def __init__(self, bytes_sent: int = 0) -> None:
        self.lock = threading.Lock()
        self.bytes_sent = bytes_sent
        self.pending_write: Optional[ScheduledTask] = None

    def take_pending(self) -> Optional[ScheduledTask]:
        """Detach and return the pending write handle (lock must be held)."""
        task, self.pending_write = self.pending_write, None
        return task
