from __future__ import annotations

import time
from typing import Callable


class Cooldowns:
    """Per (user, action) rate gate. `hit()` returns remaining seconds or 0.0."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._last: dict[tuple[str, str], float] = {}

    def hit(self, user_key, action: str, window_seconds: float) -> float:
        key = (str(user_key), str(action))
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < window_seconds:
            return window_seconds - (now - last)
        self._last[key] = now
        return 0.0
