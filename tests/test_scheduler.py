import threading
import unittest
from unittest import mock

from cindy.scheduler import PollScheduler


class PollSchedulerTests(unittest.TestCase):
    def test_failing_cycle_is_logged_and_next_tick_still_runs(self) -> None:
        second_run = threading.Event()
        calls: list[str] = []

        def run_once(trigger: str = "scheduled") -> None:
            calls.append(trigger)
            if len(calls) == 1:
                raise RuntimeError("boom")
            second_run.set()

        poll_cycle = mock.Mock()
        poll_cycle.run_once.side_effect = run_once
        scheduler = PollScheduler(poll_cycle, interval_seconds=0.01, startup_delay_seconds=0)

        with self.assertLogs("cindy.scheduler", level="ERROR") as logs:
            scheduler.start()
            self.assertTrue(second_run.wait(timeout=5))
            scheduler.stop()

        self.assertGreaterEqual(len(calls), 2)
        self.assertTrue(any("Poll cycle failed" in line for line in logs.output))
        self.assertFalse(scheduler.is_running())

    def test_stop_during_startup_delay_skips_all_cycles(self) -> None:
        poll_cycle = mock.Mock()
        scheduler = PollScheduler(poll_cycle, interval_seconds=60, startup_delay_seconds=30)

        scheduler.start()
        scheduler.stop()

        poll_cycle.run_once.assert_not_called()
        self.assertFalse(scheduler.is_running())

    def test_cycles_do_not_overlap(self) -> None:
        active = threading.Lock()
        overlaps: list[bool] = []
        done = threading.Event()

        def run_once(trigger: str = "scheduled") -> None:
            acquired = active.acquire(blocking=False)
            overlaps.append(not acquired)
            if len(overlaps) >= 3:
                done.set()
            if acquired:
                active.release()

        poll_cycle = mock.Mock()
        poll_cycle.run_once.side_effect = run_once
        scheduler = PollScheduler(poll_cycle, interval_seconds=0, startup_delay_seconds=0)

        scheduler.start()
        self.assertTrue(done.wait(timeout=5))
        scheduler.stop()

        self.assertNotIn(True, overlaps)

    def test_start_twice_keeps_single_thread(self) -> None:
        poll_cycle = mock.Mock()
        scheduler = PollScheduler(poll_cycle, interval_seconds=60, startup_delay_seconds=30)
        scheduler.start()
        first_thread = scheduler._thread
        scheduler.start()
        self.assertIs(scheduler._thread, first_thread)
        scheduler.stop()


if __name__ == "__main__":
    unittest.main()
