"""Persistent data usage tracker.

Keeps the number of bytes sent across restarts in a small JSON document
(``{"usage": <bytes>}``) inside the config directory.  Updates are applied
in memory immediately and written to disk through a
:class:`~bytetally.tracker.persister.DebouncedPersister`.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from bytetally.common.fileutil import read_document
from bytetally.common.models import UsageRecord
from bytetally.config import TrackerSettings
from bytetally.tracker.persister import DebouncedPersister
from bytetally.tracker.scheduler import TaskScheduler
from bytetally.tracker.state import UsageState

logger = logging.getLogger("bytetally.tracker.usage")


class DataUsageTracker:
    """Thread-safe, persistent count of bytes sent.

    Usage:
        tracker = DataUsageTracker(TrackerSettings(config_dir=Path("/var/lib/agent")))
        tracker.start()
        tracker.add_more_data(len(payload))
        tracker.stop()
    """

    def __init__(
        self,
        settings: Optional[TrackerSettings] = None,
        scheduler: Any = None,
        writer: Optional[Callable[[Path, int], None]] = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            settings: Tracker settings (None = defaults + environment)
            scheduler: Shared scheduler with ``schedule(fn, delay)``.  When
                None the tracker creates its own and shuts it down on stop.
            writer: Override for the usage file writer (see
                :func:`~bytetally.tracker.persister.write_usage`).
        """
        self.settings = settings or TrackerSettings()
        self._owns_scheduler = scheduler is None
        self.scheduler = scheduler if scheduler is not None else TaskScheduler()
        self._state = UsageState()
        self._persister = DebouncedPersister(
            self._state,
            self.scheduler,
            self.settings.usage_path,
            cooldown=self.settings.write_cooldown,
            writer=writer,
        )
        self._stopped = False  # guarded by _state.lock

    @property
    def name(self) -> str:
        return self.settings.usage_file_name

    @property
    def path(self) -> Path:
        return self._persister.path

    # ── Lifecycle ─────────────────────────────────────────────

    def start(self) -> int:
        """Load persisted usage. Returns the loaded value."""
        logger.debug("Loading data usage tracker file.")
        return self.load_from_storage()

    def load_from_storage(self) -> int:
        """Read the usage file into memory, falling back to zero.

        A missing file is created with zero usage.  An unreadable or
        malformed file is logged and treated as zero but left as is on
        disk until the next write.
        """
        usage = 0
        try:
            if not self.path.exists():
                self._persister.write(0)
            record = UsageRecord.from_document(read_document(self.path))
            usage = record.usage
        except (OSError, ValueError) as e:
            logger.warning("Could not read data usage tracker file from disk, assuming zero usage: %s", e)
        with self._state.lock:
            self._state.bytes_sent = usage
        return usage

    def flush(self) -> bool:
        """Write the current usage now, cancelling any pending write.

        Returns:
            True if the usage was written.
        """
        with self._state.lock:
            self._persister.cancel_pending()
            value = self._state.bytes_sent
            seq = self._persister.next_sequence()
        return self._persister.write_now(value, seq)

    def stop(self) -> bool:
        """Stop the tracker.

        A write still waiting out its cooldown is performed right away when
        ``flush_on_shutdown`` is set, and abandoned otherwise.

        Safe to call from several threads; only the first call does anything.

        Returns:
            False only if the shutdown flush failed to write.
        """
        written = True
        with self._state.lock:
            if self._stopped:
                return True
            self._stopped = True
            had_pending = self._persister.cancel_pending()
            value = self._state.bytes_sent
            seq = self._persister.next_sequence()
        if had_pending:
            if self.settings.flush_on_shutdown:
                written = self._persister.write_now(value, seq)
            else:
                logger.debug("Abandoned pending data usage write on shutdown")
        if self._owns_scheduler:
            self.scheduler.shutdown(wait=True)
        return written

    # ── Counter ───────────────────────────────────────────────

    def get_bytes_sent(self) -> int:
        """Return the number of bytes sent so far."""
        with self._state.lock:
            return self._state.bytes_sent

    def add_more_data(self, more_bytes: int) -> None:
        """Add *more_bytes* to the usage. No-op if less than 1."""
        if more_bytes < 1:
            return
        with self._state.lock:
            self._state.bytes_sent += more_bytes
            self._persister.request_write(self._state.bytes_sent)

    def reset(self) -> None:
        """Reset the usage to zero."""
        with self._state.lock:
            self._state.bytes_sent = 0
            self._persister.request_write(0)

    @property
    def has_pending_write(self) -> bool:
        with self._state.lock:
            return self._state.pending_write is not None
