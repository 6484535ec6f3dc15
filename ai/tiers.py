from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from config.defaults import PROBE_PROMPT
from config.defaults import QUOTA_MARKERS
from misc.deferred import DeferredTask


TERMINAL_TIER = 2


def is_quota_error(exc: BaseException) -> bool:
    if getattr(exc, "status_code", None) == 429:
        return True
    text = str(exc or "").lower()
    return any(marker in text for marker in QUOTA_MARKERS)


class ModelTierController:
    """Routes every generation call through a preferred model with two fallbacks.

    Quota-classified failures demote one tier and retry once on the new model.
    Leaving tier 0 arms a restore timer that probes the preferred model; a
    failed probe re-arms the timer, a successful one resets to tier 0.
    """

    def __init__(
        self,
        *,
        call_model: Callable[[str, Any], Awaitable[str]],
        models: tuple[str, str, str],
        restore_after_seconds: float,
        probe_payload: Any = PROBE_PROMPT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if len(models) != TERMINAL_TIER + 1:
            raise ValueError("exactly three model tiers are required")
        self.models = tuple(str(m) for m in models)
        self.tier = 0
        self._call_model = call_model
        self._probe_payload = probe_payload
        self._restore = DeferredTask(
            restore_after_seconds,
            self.probe_restore,
            name="AI",
            sleep=sleep,
        )

    @property
    def current_model(self) -> str:
        return self.models[self.tier]

    @property
    def restore_pending(self) -> bool:
        return self._restore.pending

    async def generate(self, payload: Any) -> str:
        tier = self.tier
        try:
            return await self._call_model(self.models[tier], payload)
        except Exception as e:
            if not is_quota_error(e):
                raise
            # An overlapping call may already have moved the tier; demote only from ours.
            if self.tier == tier:
                if tier >= TERMINAL_TIER:
                    raise
                self.tier = tier + 1
                print(f"[AI] Quota/ratelimit on {self.models[tier]}; switched to tier {self.tier}: {self.current_model}")
                self._schedule_restore()
            return await self._call_model(self.current_model, payload)

    def _schedule_restore(self) -> None:
        if self._restore.schedule():
            print(f"[AI] Restore probe for {self.models[0]} in {int(self._restore.delay_seconds)}s")

    async def probe_restore(self) -> bool:
        if self.tier == 0:
            return True
        try:
            await self._call_model(self.models[0], self._probe_payload)
        except Exception as e:
            print(f"[AI] Primary still unavailable ({str(e)[:120]}); retrying in {int(self._restore.delay_seconds)}s")
            self._schedule_restore()
            return False
        self.tier = 0
        self._restore.cancel()
        print(f"[AI] Restored to primary: {self.models[0]}")
        return True

    def shutdown(self) -> None:
        self._restore.cancel()

    def status(self) -> dict[str, Any]:
        return {
            "tier": self.tier,
            "model": self.current_model,
            "restore_pending": self.restore_pending,
        }
