"""
core/rate_limit.py
────────────────────────────────────────────────────────────────────────
Best-effort per-key throttle for plan (re)generation.

State lives in this object only: it is per process and is lost on
restart. `hit()` never awaits, so callers on one event loop cannot
interleave between the read and the write.
"""
from __future__ import annotations

import time
from typing import Callable, Hashable


class RateLimiter:
    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        self._last: dict[Hashable, float] = {}

    def hit(self, key: Hashable) -> float | None:
        """Record an attempt. Returns None when allowed, otherwise the
        seconds left until the next attempt is allowed."""
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self.window_seconds:
            return self.window_seconds - (now - last)
        self._last[key] = now
        return None

    def reset(self, key: Hashable | None = None) -> None:
        if key is None:
            self._last.clear()
        else:
            self._last.pop(key, None)
