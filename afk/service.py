from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ai.persona import AfkPersona
from ai.prompts import build_afk_messages
from config.defaults import AFK_AUTO_OFF_GRACE_SECONDS
from config.defaults import AFK_DEFAULT_REASON
from config.defaults import AFK_IMAGE_MAX_BYTES
from config.defaults import AFK_IMAGE_MIME_TYPES
from config.defaults import AFK_NOTICE_TTL_SECONDS
from config.defaults import AFK_REPLY_DELAY_RANGE
from misc.origin import OutboundTracker
from snipe.models import author_tag
from state.store import AFK_STATE_KEY


@dataclass(slots=True)
class AfkState:
    active: bool = False
    reason: str = ""
    toggled_at: float = 0.0


def _mime(attachment: Any) -> str:
    raw = str(getattr(attachment, "content_type", "") or "")
    return raw.split(";", 1)[0].strip().lower()


class AfkService:
    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        get_json_state_sync: Callable,
        set_json_state_sync: Callable,
        generate: Callable[[Any], Awaitable[str]],
        persona: AfkPersona,
        outbound: OutboundTracker,
        prefix: str,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        delay_range: tuple[float, float] = AFK_REPLY_DELAY_RANGE,
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.get_json_state_sync = get_json_state_sync
        self.set_json_state_sync = set_json_state_sync
        self.generate = generate
        self.persona = persona
        self.outbound = outbound
        self.prefix = prefix
        self._clock = clock
        self._sleep = sleep
        self.delay_range = delay_range
        self.state = AfkState()

    async def load(self) -> AfkState:
        try:
            async with self.db_lock:
                saved = await asyncio.to_thread(
                    self.get_json_state_sync, self.db_conn, AFK_STATE_KEY, {"active": False, "reason": ""}
                )
        except Exception as e:
            print(f"[AFK] Could not load saved state: {e}")
            return self.state
        self.state = AfkState(active=bool(saved.get("active")), reason=str(saved.get("reason") or ""))
        if self.state.active:
            print(f"[AFK] Restored: ON ({self.state.reason})")
        return self.state

    async def _save(self) -> None:
        payload = {"active": self.state.active, "reason": self.state.reason}
        try:
            async with self.db_lock:
                await asyncio.to_thread(self.set_json_state_sync, self.db_conn, AFK_STATE_KEY, payload)
        except Exception as e:
            print(f"[AFK] Could not persist state: {e}")

    async def toggle(self, reason: str | None = None) -> AfkState:
        active = not self.state.active
        text = (reason or "").strip() or AFK_DEFAULT_REASON
        self.state = AfkState(active=active, reason=text, toggled_at=self._clock())
        await self._save()
        print(f"[AFK] ON: {text}" if active else "[AFK] OFF (manual)")
        return self.state

    def is_command(self, content: str | None) -> bool:
        return (content or "").startswith(self.prefix)

    def should_auto_off(self, message: Any, *, own_id) -> bool:
        if not self.state.active or own_id is None:
            return False
        if int(message.author.id) != int(own_id):
            return False
        if self.is_command(getattr(message, "content", "")):
            return False
        if self.outbound.is_automation(message):
            return False
        return self._clock() - self.state.toggled_at > AFK_AUTO_OFF_GRACE_SECONDS

    async def maybe_auto_off(self, message: Any, *, own_id) -> bool:
        if not self.should_auto_off(message, own_id=own_id):
            return False
        self.state = AfkState(active=False, reason="", toggled_at=self._clock())
        await self._save()
        print("[AFK] OFF (owner is back)")
        if getattr(message, "guild", None) is not None:
            await self.flash_notice(message.channel, "👋 **AFK turned off automatically**")
        return True

    async def flash_notice(self, channel: Any, text: str) -> None:
        try:
            notice = await self.outbound.send(channel, text)
        except Exception as e:
            print(f"[AFK] Notice failed: {e}")
            return
        asyncio.create_task(self._delete_later(notice))

    async def _delete_later(self, message: Any) -> None:
        await self._sleep(AFK_NOTICE_TTL_SECONDS)
        try:
            await message.delete()
        except Exception as e:
            print(f"[AFK] Notice cleanup failed: {e}")

    def should_auto_reply(self, message: Any, *, own_user: Any) -> bool:
        if not self.state.active or own_user is None:
            return False
        author = message.author
        if int(author.id) == int(own_user.id) or bool(getattr(author, "bot", False)):
            return False
        if getattr(message, "guild", None) is None:
            return True
        mentions = getattr(message, "mentions", None) or []
        return any(int(getattr(u, "id", 0) or 0) == int(own_user.id) for u in mentions)

    async def collect_images(self, message: Any) -> list[tuple[bytes, str]]:
        out: list[tuple[bytes, str]] = []
        for attachment in getattr(message, "attachments", None) or []:
            mime_type = _mime(attachment)
            if mime_type not in AFK_IMAGE_MIME_TYPES:
                continue
            if int(getattr(attachment, "size", 0) or 0) > AFK_IMAGE_MAX_BYTES:
                continue
            try:
                out.append((await attachment.read(), mime_type))
            except Exception as e:
                print(f"[AFK] Could not fetch image {getattr(attachment, 'filename', '?')}: {e}")
        return out

    async def auto_reply(self, message: Any, *, owner_name: str) -> str | None:
        where = "DM" if message.guild is None else f"#{getattr(message.channel, 'name', message.channel.id)} ({message.guild.name})"
        preview = (message.content or "")[:120]
        print(f"[AFK] Message from {author_tag(message.author)} in {where}: {preview or '[no text]'}")

        try:
            async with message.channel.typing():
                await self._sleep(random.uniform(*self.delay_range))
                images = await self.collect_images(message)
                payload = build_afk_messages(
                    persona=self.persona,
                    owner=owner_name,
                    reason=self.state.reason or AFK_DEFAULT_REASON,
                    user_text=message.content or "",
                    images=images,
                )
                answer = await self.generate(payload)
            await self.outbound.reply(message, answer)
        except Exception as e:
            print(f"[AFK] Auto-reply failed: {e}")
            return None

        print(f"[AFK] Replied to {author_tag(message.author)}: {answer[:80]}")
        return answer
