from __future__ import annotations

import asyncio
from typing import Awaitable, Callable


class DeferredTask:
    """Single-slot delayed callback.

    `schedule()` is a no-op while a run is pending. When the delay elapses the
    slot is cleared *before* the callback runs, so a callback (or anything it
    awaits) may arm a fresh run.
    """

    def __init__(
        self,
        delay_seconds: float,
        callback: Callable[[], Awaitable[None]],
        *,
        name: str = "deferred",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.name = name
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.fired_count = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> bool:
        if self.pending:
            return False
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"lurk:{self.name}")
        return True

    def cancel(self) -> bool:
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def _run(self) -> None:
        await self._sleep(self.delay_seconds)
        self._task = None
        self.fired_count += 1
        try:
            await self._callback()
        except Exception as e:
            print(f"[{self.name}] deferred run failed: {e}")
