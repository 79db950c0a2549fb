"""Tests for the sweep scheduler thread."""

from __future__ import annotations

import threading
import time

from structlog.testing import capture_logs

from citeindex.sync.scheduler import SweepScheduler


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestSweepScheduler:
    def test_runs_repeatedly(self) -> None:
        calls: list[float] = []
        scheduler = SweepScheduler(lambda: calls.append(time.monotonic()), initial_delay=0, interval=0.01)

        scheduler.start()
        try:
            assert wait_until(lambda: len(calls) >= 3)
        finally:
            scheduler.stop()

        assert not scheduler.is_running

    def test_cancel_during_initial_delay(self) -> None:
        calls: list[int] = []
        scheduler = SweepScheduler(lambda: calls.append(1), initial_delay=60, interval=60)

        scheduler.start()
        scheduler.stop(timeout=5)

        assert calls == []
        assert not scheduler.is_running

    def test_runs_do_not_overlap(self) -> None:
        active = threading.Semaphore(1)
        overlaps: list[bool] = []
        runs: list[int] = []

        def callback() -> None:
            overlaps.append(not active.acquire(blocking=False))
            time.sleep(0.02)
            active.release()
            runs.append(1)

        scheduler = SweepScheduler(callback, initial_delay=0, interval=0)
        scheduler.start()
        try:
            assert wait_until(lambda: len(runs) >= 3)
        finally:
            scheduler.stop()

        assert not any(overlaps)

    def test_failing_callback_logged_and_rescheduled(self) -> None:
        runs: list[int] = []

        def callback() -> None:
            runs.append(1)
            raise RuntimeError("sweep bug")

        scheduler = SweepScheduler(callback, initial_delay=0, interval=0.01)
        with capture_logs() as logs:
            scheduler.start()
            try:
                assert wait_until(lambda: len(runs) >= 2)
            finally:
                scheduler.stop()

        assert any(e["event"] == "sweep_failed" for e in logs)

    def test_stop_from_callback_does_not_deadlock(self) -> None:
        stopped = threading.Event()
        scheduler: SweepScheduler

        def callback() -> None:
            scheduler.stop()
            stopped.set()

        scheduler = SweepScheduler(callback, initial_delay=0, interval=0.01)
        scheduler.start()

        assert stopped.wait(timeout=5)

    def test_start_is_idempotent(self) -> None:
        scheduler = SweepScheduler(lambda: None, initial_delay=60, interval=60)
        scheduler.start()
        first = scheduler._thread
        scheduler.start()

        assert scheduler._thread is first
        scheduler.stop()
