"""Tests for the shared token-bucket rate limiter."""
import threading
import time

import pytest

from ingestion.pipeline.rate_limiter import RateLimiter


class FakeClock:
    """Manual clock; sleeping advances it."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = 0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps += 1
        self.now += seconds + 1e-9


def test_permits_bounded_by_rate_times_duration_plus_burst():
    """At R=100/s no more than R*T + C permits are granted in T seconds."""
    clock = FakeClock()
    limiter = RateLimiter(100, capacity=1, quantum=1, clock=clock, sleep=clock.sleep)

    duration = 2.0
    granted = 0
    while True:
        limiter.acquire()
        if clock.now > duration:
            break
        granted += 1

    assert granted <= 100 * duration + 1
    assert granted >= 100 * duration - 2


def test_burst_capacity_is_available_immediately():
    clock = FakeClock()
    limiter = RateLimiter(10, capacity=5, clock=clock, sleep=clock.sleep)

    for _ in range(5):
        limiter.acquire()

    assert clock.sleeps == 0
    limiter.acquire()
    assert clock.sleeps >= 1
    assert clock.now == pytest.approx(0.1, abs=1e-6)


def test_idle_time_does_not_accumulate_beyond_capacity():
    clock = FakeClock()
    limiter = RateLimiter(100, capacity=2, clock=clock, sleep=clock.sleep)

    clock.now = 60.0
    limiter.acquire()
    limiter.acquire()
    assert clock.sleeps == 0
    limiter.acquire()
    assert clock.sleeps >= 1


def test_shared_limiter_throttles_all_threads():
    """Threads sharing one limiter observe one combined rate."""
    limiter = RateLimiter(100)
    per_thread = 5
    threads = [
        threading.Thread(target=lambda: [limiter.acquire() for _ in range(per_thread)])
        for _ in range(8)
    ]

    started = time.monotonic()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    elapsed = time.monotonic() - started

    assert limiter.granted == 40
    # First permit is free, the remaining 39 need one tick each
    assert elapsed >= 0.38


@pytest.mark.parametrize("kwargs", [
    {"requests_per_second": 0},
    {"requests_per_second": 10, "capacity": 0},
    {"requests_per_second": 10, "quantum": 0},
])
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
