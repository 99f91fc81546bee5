"""Per-thread cooldown gate for model calls."""

from __future__ import annotations

import time
from typing import Callable, Dict


class RateLimiter:
    """Admit at most one call per cooldown window per key; denied calls are simply dropped."""

    def __init__(self, cooldown: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._cooldown = cooldown
        self._clock = clock
        self._last_call: Dict[str, float] = {}

    def can_respond(self, key: str) -> bool:
        now = self._clock()
        previous = self._last_call.get(key)
        if previous is not None and now - previous < self._cooldown:
            return False
        self._last_call[key] = now
        return True

    def reset(self, key: str) -> None:
        self._last_call.pop(key, None)


__all__ = ["RateLimiter"]
