from __future__ import annotations

import logging
import threading
from typing import Optional

from cindy.poll_cycle import PollCycle


logger = logging.getLogger(__name__)

STARTUP_DELAY_SECONDS = 1.0


class PollScheduler:
    """Runs poll cycles on a daemon thread with fixed-delay semantics.

    The next cycle starts ``interval_seconds`` after the previous one finished,
    so cycles never overlap. A failing cycle is logged and the next one is
    scheduled anyway.
    """

    def __init__(
        self,
        poll_cycle: PollCycle,
        interval_seconds: float,
        startup_delay_seconds: float = STARTUP_DELAY_SECONDS,
    ) -> None:
        self.poll_cycle = poll_cycle
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="cindy-poll-scheduler", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _tick(self) -> None:
        try:
            self.poll_cycle.run_once(trigger="scheduled")
        except Exception:
            logger.exception("Poll cycle failed; retrying in %s seconds.", self.interval_seconds)

    def _loop(self) -> None:
        if self._stop_event.wait(timeout=self.startup_delay_seconds):
            return
        while not self._stop_event.is_set():
            self._tick()
            logger.info("Waiting %s seconds for next polling interval...", self.interval_seconds)
            if self._stop_event.wait(timeout=self.interval_seconds):
                break
