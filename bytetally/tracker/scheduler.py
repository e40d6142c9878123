"""One-shot delayed task scheduler.

All tasks of a scheduler run on one daemon worker thread that sleeps on a
deadline heap, so scheduling and cancelling never start a thread.  A
cancelled task that has not started never runs its body and never logs;
cancelling a task that is already running or finished is a silent no-op.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, Optional

from bytetally.common.constants import SCHEDULER_THREAD_PREFIX
from bytetally.common.errors import SchedulerShutdownError

logger = logging.getLogger("bytetally.tracker.scheduler")

# Rebuild the heap once this many cancelled entries are waiting in it
_COMPACT_THRESHOLD = 64


class ScheduledTask:
    """Handle to a task scheduled on a :class:`TaskScheduler`."""

    def __init__(
        self,
        fn: Callable[[], None],
        delay: float,
        name: str,
        on_finish: Optional[Callable[["ScheduledTask"], None]] = None,
    ) -> None:
        self.name = name
        self.delay = delay
        self.deadline = time.monotonic() + delay
        self._fn = fn
        self._on_finish = on_finish
        self._lock = threading.Lock()
        self._cancelled = False
        self._started = False
        self._done = threading.Event()

    def cancel(self) -> bool:
        """Cancel the task if it has not started.

        Returns:
            True if the task was prevented from running.
        """
        with self._lock:
            if self._started or self._cancelled:
                return False
            self._cancelled = True
        self._done.set()
        if self._on_finish:
            self._on_finish(self)
        return True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once the task has finished running or was cancelled."""
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the task is done. Returns False on timeout."""
        return self._done.wait(timeout)

    def run(self) -> None:
        """Run the body unless cancelled; exceptions are logged."""
        with self._lock:
            if self._cancelled:
                return
            self._started = True
        try:
            self._fn()
        except Exception:
            logger.exception("Scheduled task %s failed", self.name)
        finally:
            self._done.set()
            if self._on_finish:
                self._on_finish(self)


class TaskScheduler:
    """Run one-shot callables after a delay on a background worker thread.

    Tasks run one at a time in deadline order.  The worker starts with the
    first scheduled task and exits after :meth:`shutdown`.

    Usage:
        scheduler = TaskScheduler()
        task = scheduler.schedule(save, 5.0)
        task.cancel()
        scheduler.shutdown()
    """

    def __init__(self, name_prefix: str = SCHEDULER_THREAD_PREFIX) -> None:
        self.name_prefix = name_prefix
        self._cond = threading.Condition()
        self._heap: list[tuple[float, int, ScheduledTask]] = []
        self._pending: set[ScheduledTask] = set()
        self._stale = 0
        self._shutdown = False
        self._counter = itertools.count(1)
        self._worker: Optional[threading.Thread] = None

    def schedule(self, fn: Callable[[], None], delay: float) -> ScheduledTask:
        """Schedule *fn* to run once after *delay* seconds.

        Raises:
            SchedulerShutdownError: if :meth:`shutdown` has been called.
        """
        with self._cond:
            if self._shutdown:
                raise SchedulerShutdownError()
            n = next(self._counter)
            task = ScheduledTask(
                fn,
                max(0.0, delay),
                name=f"{self.name_prefix}-{n}",
                on_finish=self._discard,
            )
            self._pending.add(task)
            heapq.heappush(self._heap, (task.deadline, n, task))
            if self._worker is None:
                self._worker = threading.Thread(target=self._run_loop, name=f"{self.name_prefix}-worker", daemon=True)
                self._worker.start()
            self._cond.notify()
        return task

    def shutdown(self, wait: bool = False, timeout: Optional[float] = None) -> None:
        """Reject new tasks and cancel every task that has not started.

        Args:
            wait: Also wait for a task that is already running.
            timeout: Per-task wait limit in seconds.
        """
        with self._cond:
            self._shutdown = True
            tasks = list(self._pending)
        cancelled = sum(1 for t in tasks if t.cancel())
        if cancelled:
            logger.debug("Scheduler shutdown cancelled %d pending task(s)", cancelled)
        with self._cond:
            self._cond.notify_all()
        if wait:
            for t in tasks:
                t.wait(timeout)

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def pending_count(self) -> int:
        """Number of tasks scheduled or running but not yet finished."""
        with self._cond:
            return len(self._pending)

    def _discard(self, task: ScheduledTask) -> None:
        with self._cond:
            self._pending.discard(task)
            if task.cancelled:
                self._stale += 1
                if self._stale >= _COMPACT_THRESHOLD and self._stale * 2 >= len(self._heap):
                    self._heap = [e for e in self._heap if not e[2].cancelled]
                    heapq.heapify(self._heap)
                    self._stale = 0

    def _next_due(self) -> Optional[ScheduledTask]:
        """Wait for the next due task; None once shut down and drained."""
        with self._cond:
            while True:
                while self._heap and self._heap[0][2].cancelled:
                    heapq.heappop(self._heap)
                    self._stale = max(0, self._stale - 1)
                if not self._heap:
                    if self._shutdown:
                        return None
                    self._cond.wait()
                    continue
                deadline, _, task = self._heap[0]
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    heapq.heappop(self._heap)
                    return task
                self._cond.wait(remaining)

    def _run_loop(self) -> None:
        while True:
            task = self._next_due()
            if task is None:
                return
            task.run()
