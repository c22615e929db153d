from __future__ import annotations

import math
import time
from collections import deque
from typing import Callable


class SimpleRateLimiter:
    """Sliding-window counter kept in process memory.

    ``key_func`` folds equivalent keys onto one bucket (for example differently
    cased spellings of the same login email). Buckets whose events have all
    expired are dropped, so the table only holds keys seen inside the window.
    """

    def __init__(
        self,
        *,
        max_events: int,
        window_seconds: int,
        key_func: Callable[[str], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._key_func = key_func or (lambda key: key)
        self._clock = clock
        self._events: dict[str, deque[float]] = {}

    def _bucket(self, key: str, now: float) -> tuple[str, deque[float] | None]:
        key = self._key_func(key)
        events = self._events.get(key)
        if events is None:
            return key, None
        window_start = now - self.window_seconds
        while events and events[0] <= window_start:
            events.popleft()
        if not events:
            del self._events[key]
            return key, None
        return key, events

    def allow(self, key: str) -> bool:
        now = self._clock()
        key, events = self._bucket(key, now)
        if events is None:
            self._events[key] = deque([now])
            return True
        if len(events) >= self.max_events:
            return False
        events.append(now)
        return True

    def retry_after(self, key: str) -> int:
        """Seconds until ``key`` may try again; 0 when it is not throttled."""
        now = self._clock()
        _, events = self._bucket(key, now)
        if events is None or len(events) < self.max_events:
            return 0
        return max(1, math.ceil(events[0] + self.window_seconds - now))

    def tracked_keys(self) -> int:
        return len(self._events)

    def reset(self) -> None:
        self._events.clear()
