from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from config.defaults import STATUS_ALIASES
from config.defaults import STATUS_EMOJI
from config.defaults import STATUS_LABEL
from config.defaults import VALID_STATUSES
from state.store import USER_STATUS_KEY


def normalize_status(raw: str | None) -> str | None:
    text = (raw or "").strip().lower()
    target = STATUS_ALIASES.get(text, text)
    return target if target in VALID_STATUSES else None


def status_usage() -> str:
    return (
        "❌ Invalid status!\n"
        "🟢 `online` / `on`  →  Online\n"
        "🟡 `idle`  →  Idle\n"
        "🔴 `dnd` / `busy`  →  Do Not Disturb\n"
        "⚫ `invisible` / `off`  →  Offline (invisible)"
    )


class PresenceService:
    """Keeps the account on the status the owner picked, across restarts."""

    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        get_json_state_sync: Callable,
        set_json_state_sync: Callable,
        apply_presence: Callable[[str], Awaitable[None]],
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.get_json_state_sync = get_json_state_sync
        self.set_json_state_sync = set_json_state_sync
        self.apply_presence = apply_presence
        self.status = "online"

    async def load(self) -> str:
        try:
            async with self.db_lock:
                saved = await asyncio.to_thread(
                    self.get_json_state_sync, self.db_conn, USER_STATUS_KEY, {"status": "online"}
                )
        except Exception as e:
            print(f"[Status] Could not load saved status: {e}")
            return self.status
        self.status = normalize_status(saved.get("status")) or "online"
        return self.status

    async def apply(self) -> bool:
        try:
            await self.apply_presence(self.status)
        except Exception as e:
            print(f"[Status] Could not apply {self.status}: {e}")
            return False
        return True

    async def set_status(self, raw: str | None) -> tuple[bool, str]:
        target = normalize_status(raw)
        if target is None:
            return (False, status_usage())
        self.status = target
        try:
            async with self.db_lock:
                await asyncio.to_thread(self.set_json_state_sync, self.db_conn, USER_STATUS_KEY, {"status": target})
        except Exception as e:
            print(f"[Status] Could not persist status: {e}")
        await self.apply()
        print(f"[Status] Set -> {STATUS_LABEL[target]}")
        return (True, f"{STATUS_EMOJI[target]} **Status: {STATUS_LABEL[target]}** (kept across restarts)")

    async def clear_status(self) -> tuple[bool, str]:
        ok, _msg = await self.set_status("online")
        return (ok, "🟢 **Status reset to Online**")

