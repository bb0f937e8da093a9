from __future__ import annotations

import threading
import time

import pytest

from jobs.poller import ACTIVE_LOOPS_GAUGE, PollingLoop


def test_loop_ticks_until_callback_returns_false():
    calls = []
    done = threading.Event()

    def _tick():
        calls.append(time.monotonic())
        if len(calls) == 3:
            done.set()
            return False
        return True

    loop = PollingLoop(_tick, interval_s=0.01, name="test-loop")
    loop.start()

    assert done.wait(2.0)
    loop.join(timeout=2.0)
    assert len(calls) == 3
    assert loop.ticks == 3
    assert loop.active is False


def test_cancel_is_idempotent_and_stops_scheduling():
    calls = []
    loop = PollingLoop(lambda: calls.append(1) or True, interval_s=0.01)
    loop.start()
    time.sleep(0.05)

    loop.cancel()
    loop.cancel()
    loop.join(timeout=2.0)
    seen = len(calls)
    time.sleep(0.05)

    assert loop.active is False
    assert len(calls) == seen


def test_cancel_before_first_tick_issues_no_calls():
    calls = []
    loop = PollingLoop(lambda: calls.append(1) or True, interval_s=0.5)
    loop.start()
    assert loop.active is True

    loop.cancel()
    loop.join(timeout=2.0)

    assert calls == []


def test_tick_exception_ends_loop():
    def _tick():
        raise RuntimeError("boom")

    loop = PollingLoop(_tick, interval_s=0.01)
    loop.start()
    loop.join(timeout=2.0)

    assert loop.ticks == 1
    assert loop.active is False


def test_ticks_never_overlap():
    in_flight = []
    max_in_flight = []
    lock = threading.Lock()
    calls = []

    def _tick():
        with lock:
            in_flight.append(1)
            max_in_flight.append(len(in_flight))
        time.sleep(0.03)
        with lock:
            in_flight.pop()
        calls.append(1)
        return len(calls) < 3

    loop = PollingLoop(_tick, interval_s=0.005)
    loop.start()
    loop.join(timeout=2.0)

    assert len(calls) == 3
    assert max(max_in_flight) == 1


def test_cancel_from_inside_tick():
    holder = {}

    def _tick():
        holder["loop"].cancel()
        return True

    loop = PollingLoop(_tick, interval_s=0.01)
    holder["loop"] = loop
    loop.start()
    loop.join(timeout=2.0)

    assert loop.ticks == 1
    assert loop.active is False


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PollingLoop(lambda: True, interval_s=0)


def test_active_loops_gauge_tracks_running_loops():
    baseline = ACTIVE_LOOPS_GAUGE.snapshot()
    release = threading.Event()
    loop = PollingLoop(lambda: not release.is_set(), interval_s=0.01)

    loop.start()
    assert ACTIVE_LOOPS_GAUGE.snapshot() == baseline + 1

    release.set()
    loop.join(timeout=2.0)
    assert ACTIVE_LOOPS_GAUGE.snapshot() == baseline
