"""
Unit tests for the one-shot task scheduler.

    python -m pytest tests/test_scheduler.py -v
"""

import logging
import sys
import threading
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from bytetally.common.errors import SchedulerShutdownError, TrackerError  # noqa: E402
from bytetally.tracker.scheduler import TaskScheduler  # noqa: E402


@pytest.fixture
def scheduler():
    s = TaskScheduler()
    yield s
    s.shutdown()


def test_task_runs_after_delay(scheduler: TaskScheduler):
    ran = threading.Event()
    started = time.monotonic()
    task = scheduler.schedule(ran.set, 0.05)

    assert task.wait(2.0)
    assert ran.is_set()
    assert time.monotonic() - started >= 0.04
    assert task.done
    assert not task.cancelled


def test_task_runs_on_named_thread(scheduler: TaskScheduler):
    names = []
    task = scheduler.schedule(lambda: names.append(threading.current_thread().name), 0)
    task.wait(2.0)
    assert names and names[0].startswith("bt-sched-")


def test_cancel_before_run_prevents_body(scheduler: TaskScheduler):
    calls = []
    task = scheduler.schedule(lambda: calls.append(1), 0.2)

    assert task.cancel() is True
    assert task.cancelled
    assert task.done
    time.sleep(0.3)
    assert calls == []


def test_cancel_twice_is_silent(scheduler: TaskScheduler):
    task = scheduler.schedule(lambda: None, 0.2)
    assert task.cancel() is True
    assert task.cancel() is False


def test_cancel_after_run_is_noop(scheduler: TaskScheduler):
    calls = []
    task = scheduler.schedule(lambda: calls.append(1), 0)
    task.wait(2.0)

    assert task.cancel() is False
    assert not task.cancelled
    assert calls == [1]


def test_cancel_while_running_is_noop(scheduler: TaskScheduler):
    entered = threading.Event()
    release = threading.Event()

    def body() -> None:
        entered.set()
        release.wait(2.0)

    task = scheduler.schedule(body, 0)
    assert entered.wait(2.0)
    assert task.cancel() is False
    release.set()
    assert task.wait(2.0)


def test_task_exception_is_logged(scheduler: TaskScheduler, caplog):
    def boom() -> None:
        raise RuntimeError("kaboom")

    with caplog.at_level(logging.ERROR, logger="bytetally"):
        task = scheduler.schedule(boom, 0)
        assert task.wait(2.0)

    assert "failed" in caplog.text
    assert "kaboom" in caplog.text

    # Scheduler keeps working
    ok = threading.Event()
    assert scheduler.schedule(ok.set, 0).wait(2.0)
    assert ok.is_set()


def test_pending_count_tracks_live_tasks(scheduler: TaskScheduler):
    a = scheduler.schedule(lambda: None, 1.0)
    b = scheduler.schedule(lambda: None, 1.0)
    assert scheduler.pending_count == 2

    a.cancel()
    assert scheduler.pending_count == 1
    b.cancel()
    assert scheduler.pending_count == 0


def test_negative_delay_runs_immediately(scheduler: TaskScheduler):
    ran = threading.Event()
    task = scheduler.schedule(ran.set, -5)
    assert task.delay == 0.0
    assert task.wait(2.0)


def test_shutdown_cancels_pending_and_rejects_new():
    s = TaskScheduler()
    calls = []
    task = s.schedule(lambda: calls.append(1), 0.2)

    s.shutdown()

    assert s.is_shutdown
    assert task.cancelled
    assert s.pending_count == 0
    with pytest.raises(SchedulerShutdownError):
        s.schedule(lambda: None, 0)
    time.sleep(0.3)
    assert calls == []


def test_shutdown_wait_lets_running_task_finish():
    s = TaskScheduler()
    entered = threading.Event()
    finished = threading.Event()

    def body() -> None:
        entered.set()
        time.sleep(0.1)
        finished.set()

    s.schedule(body, 0)
    assert entered.wait(2.0)
    s.shutdown(wait=True, timeout=2.0)
    assert finished.is_set()


def test_shutdown_error_is_tracker_error():
    assert issubclass(SchedulerShutdownError, TrackerError)
    assert str(SchedulerShutdownError()) == "Scheduler has been shut down"


def test_tasks_share_one_worker_thread(scheduler: TaskScheduler):
    names = set()
    tasks = [scheduler.schedule(lambda: names.add(threading.current_thread().name), 0) for _ in range(5)]
    for t in tasks:
        assert t.wait(2.0)
    assert names == {"bt-sched-worker"}


def test_schedule_and_cancel_start_no_threads(scheduler: TaskScheduler):
    scheduler.schedule(lambda: None, 0).wait(2.0)
    before = threading.active_count()

    for _ in range(1000):
        scheduler.schedule(lambda: None, 60.0).cancel()

    assert threading.active_count() <= before
    assert scheduler.pending_count == 0


def test_cancelled_entries_are_compacted(scheduler: TaskScheduler):
    for _ in range(500):
        scheduler.schedule(lambda: None, 60.0).cancel()
    assert len(scheduler._heap) < 500


def test_tasks_run_in_deadline_order(scheduler: TaskScheduler):
    order = []
    late = scheduler.schedule(lambda: order.append("late"), 0.15)
    early = scheduler.schedule(lambda: order.append("early"), 0.05)

    assert late.wait(2.0)
    assert early.done
    assert order == ["early", "late"]


def test_earlier_task_wakes_sleeping_worker(scheduler: TaskScheduler):
    scheduler.schedule(lambda: None, 30.0)
    ran = threading.Event()
    started = time.monotonic()
    scheduler.schedule(ran.set, 0.05)

    assert ran.wait(2.0)
    assert time.monotonic() - started < 1.0


def test_shutdown_stops_worker():
    s = TaskScheduler()
    s.schedule(lambda: None, 30.0)
    worker = s._worker
    s.shutdown()
    worker.join(2.0)
    assert not worker.is_alive()
