"""Per-token rate limiting.

Design:
- Fixed window per hour, per token (fingerprint).
- No per-second burst logic.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

from engine.core.errors import ModerationError


class RateLimitExceeded(ModerationError):
    """Rate limit exceeded. Please reduce request cadence."""

    status_code = 429
    code = "rate_limited"


@dataclass(slots=True)
class _Window:
    start_hour: int
    count: int


class InMemoryHourlyRateLimiter:
    """Simple per-process limiter.

    If you run multiple workers, limits become per-worker; a shared store is
    needed for strict guarantees.
    """

    def __init__(self, *, limit_per_hour: int, clock: Callable[[], float] = time.time) -> None:
        self._limit = limit_per_hour
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._swept_hour = -1

    @property
    def limit(self) -> int:
        return self._limit

    def check(self, key: str) -> None:
        hour = int(self._clock()) // 3600
        with self._lock:
            if hour != self._swept_hour:
                # Windows from earlier hours can never be hit again.
                self._windows = {k: v for k, v in self._windows.items() if v.start_hour == hour}
                self._swept_hour = hour
            w = self._windows.get(key)
            if w is None or w.start_hour != hour:
                w = _Window(start_hour=hour, count=0)
                self._windows[key] = w
            w.count += 1
            exceeded = w.count > self._limit
        if exceeded:
            raise RateLimitExceeded(details={"limit_per_hour": self._limit})

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

