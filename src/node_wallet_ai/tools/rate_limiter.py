"""Rolling-window rate limiter for AI-initiated wallet actions.

One limiter belongs to one tool bridge; nothing is shared between bridges.
"""

from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable

Clock = Callable[[], float]


class _Window:
    def __init__(self, max_count: int, window_seconds: float, clock: Clock) -> None:
        self.max_count = max_count
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: deque[float] = deque()

    def _expire(self) -> float:
        now = self._clock()
        while self._hits and self._hits[0] <= now - self.window_seconds:
            self._hits.popleft()
        return now

    def used(self) -> int:
        self._expire()
        return len(self._hits)

    def hit(self) -> None:
        self._hits.append(self._expire())

    def retry_after(self) -> float:
        """Seconds until the oldest hit leaves the window (0 when a slot is free)."""
        now = self._expire()
        if len(self._hits) < self.max_count:
            return 0.0
        return max(0.0, self._hits[0] + self.window_seconds - now)


class RateLimiter:
    """Named rolling windows. Keys without a configured window are unlimited."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def configure(self, key: str, max_count: int, window_seconds: float) -> None:
        self._windows[key] = _Window(max_count, window_seconds, self._clock)

    def check(self, key: str) -> bool:
        """True if one more action under *key* fits in the window."""
        window = self._windows.get(key)
        return window is None or window.used() < window.max_count

    def record(self, key: str) -> None:
        if key in self._windows:
            self._windows[key].hit()

    def remaining(self, key: str) -> int | None:
        """Actions left in the current window, or ``None`` when unlimited."""
        window = self._windows.get(key)
        if window is None:
            return None
        return max(0, window.max_count - window.used())

    def retry_after_minutes(self, key: str) -> int:
        window = self._windows.get(key)
        if window is None:
            return 0
        return math.ceil(window.retry_after() / 60)
