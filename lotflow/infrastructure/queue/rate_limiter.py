"""Sliding-window rate limiter shared by the workers of one queue."""
from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Optional


class RateLimiter:
    """Allow at most ``max_calls`` acquisitions per ``window_seconds``."""

    def __init__(
        self,
        max_calls: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_calls < 1:
            raise ValueError("max_calls must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()
        self._lock = threading.Lock()

    def try_acquire(self) -> float:
        """Take a slot if one is free.

        Returns ``0.0`` when the slot was taken, otherwise the number of
        seconds until the oldest call leaves the window.
        """
        with self._lock:
            now = self._clock()
            while self._calls and now - self._calls[0] >= self.window_seconds:
                self._calls.popleft()
            if len(self._calls) < self.max_calls:
                self._calls.append(now)
                return 0.0
            return max(self.window_seconds - (now - self._calls[0]), 0.001)

    def acquire(self, stop: Optional[threading.Event] = None) -> bool:
        """Block until a slot is taken; returns ``False`` if ``stop`` was set first."""
        while True:
            wait = self.try_acquire()
            if wait == 0.0:
                return True
            if stop is None:
                time.sleep(wait)
            elif stop.wait(wait):
                return False
