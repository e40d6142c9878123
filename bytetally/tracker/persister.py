"""Debounced, coalescing writer for the usage document.

Each request cancels the previous pending write and schedules a new one
after the cooldown, so a burst of updates costs one disk write carrying the
latest value.  Every captured value gets a sequence number; writes are
serialized and a value older than the one already on disk is dropped.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from bytetally.common.constants import DEFAULT_WRITE_COOLDOWN
from bytetally.common.errors import SchedulerShutdownError
from bytetally.common.fileutil import write_document
from bytetally.common.models import UsageRecord
from bytetally.tracker.scheduler import ScheduledTask
from bytetally.tracker.state import UsageState

logger = logging.getLogger("bytetally.tracker.persister")


def write_usage(path: Path, usage: int) -> None:
    """Write *usage* to *path* as a usage document.

    Raises:
        OSError: if the file cannot be written.
    """
    write_document(path, UsageRecord(usage=usage).to_document())


class DebouncedPersister:
    """Coalesce usage writes for one :class:`UsageState`.

    Args:
        state: The guarded state whose ``pending_write`` this persister owns.
        scheduler: Anything with ``schedule(fn, delay) -> ScheduledTask``.
        path: Target usage file.
        cooldown: Seconds between the last request and its write.
        writer: ``(path, value) -> None``; defaults to :func:`write_usage`.
    """

    def __init__(
        self,
        state: UsageState,
        scheduler: Any,
        path: Path,
        cooldown: float = DEFAULT_WRITE_COOLDOWN,
        writer: Optional[Callable[[Path, int], None]] = None,
    ) -> None:
        self.state = state
        self.scheduler = scheduler
        self.path = Path(path)
        self.cooldown = cooldown
        self._writer = writer or write_usage
        self._write_lock = threading.Lock()
        self._seq = 0  # guarded by state.lock
        self._written_seq = 0  # guarded by _write_lock

    def request_write(self, value: int) -> None:
        """Replace any pending write with one carrying *value*.

        Must be called while holding ``state.lock``.
        """
        pending = self.state.take_pending()
        if pending is not None:
            pending.cancel()
        seq = self.next_sequence()

        task: Optional[ScheduledTask] = None

        def _write_task() -> None:
            # This task is no longer pending
            with self.state.lock:
                if self.state.pending_write is task:
                    self.state.pending_write = None
            self.write_now(value, seq)

        try:
            task = self.scheduler.schedule(_write_task, self.cooldown)
        except SchedulerShutdownError as e:
            logger.warning("Could not queue usage save task: %s", e)
            return
        except Exception:
            logger.warning("Could not queue usage save task.", exc_info=True)
            return
        self.state.pending_write = task

    def next_sequence(self) -> int:
        """Number the value being captured (lock must be held)."""
        self._seq += 1
        return self._seq

    def cancel_pending(self) -> bool:
        """Cancel the pending write, if any (lock must be held).

        Returns:
            True if a write was prevented from running.
        """
        pending = self.state.take_pending()
        return pending.cancel() if pending is not None else False

    def write(self, value: int) -> None:
        """Write *value* to the usage file.

        Raises:
            OSError: if the file cannot be written.
        """
        self._writer(self.path, value)

    def write_now(self, value: int, seq: int) -> bool:
        """Write *value* captured as *seq*, logging instead of raising on failure.

        Blocks while another write is in progress.  Never call this while
        holding ``state.lock``.

        Returns:
            True if the file holds *value* or a newer one afterwards.
        """
        with self._write_lock:
            if seq < self._written_seq:
                logger.debug("Skipped stale data usage %d (seq %d < %d)", value, seq, self._written_seq)
                return True
            try:
                self.write(value)
            except PermissionError as e:
                logger.warning("Could not save data usage to disk: %s", e)
                return False
            except OSError:
                logger.warning("Could not save data usage to disk.", exc_info=True)
                return False
            self._written_seq = seq
        logger.debug("Saved data usage %d to %s", value, self.path)
        return True
