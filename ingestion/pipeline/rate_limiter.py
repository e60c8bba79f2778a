"""
Shared request throttle.

One RateLimiter instance is handed to the Polygon client and every worker
thread goes through it, so all requests observe the same bucket.
"""
import threading
import time
from typing import Callable


class RateLimiter:
    """
    Thread-safe rate limiter using token bucket algorithm.

    The bucket holds at most ``capacity`` tokens and gains ``quantum`` tokens
    every ``1 / requests_per_second`` seconds. Over any window of T seconds at
    most ``capacity + quantum * requests_per_second * T`` permits are granted.
    """

    def __init__(self, requests_per_second: float = 100, capacity: int = 1, quantum: int = 1,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize rate limiter.

        Args:
            requests_per_second: Refill ticks per second
            capacity: Maximum tokens held (burst size)
            quantum: Tokens added per tick
            clock: Monotonic time source
            sleep: Blocking sleep used while waiting for a token
        """
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if capacity < 1 or quantum < 1:
            raise ValueError("capacity and quantum must be at least 1")
        self.rate = requests_per_second
        self.interval = 1.0 / requests_per_second
        self.capacity = capacity
        self.quantum = quantum
        self._clock = clock
        self._sleep = sleep
        self.tokens = capacity
        self.last_refill = clock()
        self.granted = 0
        self.lock = threading.Lock()

    def _refill(self, now: float) -> None:
        ticks = int((now - self.last_refill) / self.interval)
        if ticks <= 0:
            return
        self.tokens = min(self.capacity, self.tokens + ticks * self.quantum)
        self.last_refill += ticks * self.interval

    def acquire(self) -> None:
        """Acquire a token (blocks if necessary)"""
        # Waiters queue on the lock; the holder sleeps until the next tick
        with self.lock:
            while True:
                now = self._clock()
                self._refill(now)
                if self.tokens >= 1:
                    self.tokens -= 1
                    self.granted += 1
                    return
                self._sleep(max(self.last_refill + self.interval - now, 0.0))
