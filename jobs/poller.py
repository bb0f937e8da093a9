"""Cancellable fixed-interval loop that drives job status checks."""
from __future__ import annotations

import threading
from typing import Callable, Optional

from observability.logger import get_logger
from observability.metrics import get_registry

LOGGER = get_logger("textify.jobs.poller")
ACTIVE_LOOPS_GAUGE = get_registry().gauge("jobs.active_loops")

TickCallback = Callable[[], bool]


class PollingLoop:
    """Background thread calling ``tick`` every ``interval_s`` seconds.

    Ticks run one after another on the loop thread, so a slow status check
    postpones the next tick instead of overlapping with it. ``tick`` returns
    ``False`` to end the loop. ``cancel`` may be called any number of times,
    from any thread, including from inside ``tick``.
    """

    def __init__(self, tick: TickCallback, *, interval_s: float, name: str = "job-poller") -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._tick = tick
        self._interval_s = float(interval_s)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)
        self._lock = threading.Lock()
        self._started = False
        self._finished = False
        self.ticks = 0

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def name(self) -> str:
        return self._thread.name

    @property
    def active(self) -> bool:
        with self._lock:
            return self._started and not self._finished and not self._stop.is_set()

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
        ACTIVE_LOOPS_GAUGE.add(1)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if not self._started or threading.current_thread() is self._thread:
            return
        self._thread.join(timeout)

    def _worker(self) -> None:
        try:
            while not self._stop.wait(self._interval_s):
                self.ticks += 1
                try:
                    keep_going = self._tick()
                except Exception as exc:  # noqa: BLE001
                    LOGGER.exception("poll_tick_failed", extra={"loop": self.name, "error": str(exc)})
                    break
                if not keep_going:
                    break
        finally:
            self._stop.set()
            with self._lock:
                self._finished = True
            ACTIVE_LOOPS_GAUGE.add(-1)
            LOGGER.info("poll_loop_stopped", extra={"loop": self.name, "ticks": self.ticks})


__all__ = ["PollingLoop", "TickCallback"]
