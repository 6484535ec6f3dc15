from __future__ import annotations

import asyncio
import math
import time
from typing import Any, Awaitable, Callable

from ai.prompts import build_ask_prompt
from ai.prompts import build_translate_prompt
from ai.prompts import clip_answer
from config.defaults import ASK_COOLDOWN_SECONDS
from config.defaults import DEFAULT_TRANSLATE_LANG
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from config.defaults import LOGS_DEFAULT_LIMIT
from config.defaults import PURGE_DEFAULT_AMOUNT
from config.defaults import PURGE_PAUSE_SECONDS
from config.defaults import PURGE_SCAN_LIMIT
from config.defaults import TRANSLATE_COOLDOWN_SECONDS
from misc.cooldowns import Cooldowns
from ops.stats import collect_host_stats_sync
from ops.stats import format_stats_block
from ops.stats import format_stats_console


def parse_count(raw: str | None, default: int, maximum: int | None = None) -> int:
    try:
        value = int(str(raw or "").strip())
    except ValueError:
        value = 0
    if value <= 0:
        value = default
    if maximum is not None:
        value = min(value, maximum)
    return value


def format_log_line(row: dict, *, console: bool) -> str:
    attach = " 📎" if row.get("has_attach") else ""
    if console:
        content = (row.get("content") or "")[:80]
        return f"  [{row.get('deleted_at')}] {row.get('guild_name')}/#{row.get('channel_name')} | {row.get('author_tag')}: {content}{attach}"
    content = (row.get("content") or "")[:60]
    return f"[{row.get('deleted_at')}] **{row.get('guild_name')}/#{row.get('channel_name')}** | {row.get('author_tag')}: {content}{attach}"


class OperatorService:
    """Actions shared by the in-chat commands and the console."""

    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        fetch_recent_message_logs_sync: Callable,
        clear_message_log_sync: Callable,
        cache,
        media,
        ranker,
        tiers,
        cooldowns: Cooldowns,
        started_at: float,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        collect_host_stats: Callable[[], dict] = collect_host_stats_sync,
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.fetch_recent_message_logs_sync = fetch_recent_message_logs_sync
        self.clear_message_log_sync = clear_message_log_sync
        self.cache = cache
        self.media = media
        self.ranker = ranker
        self.tiers = tiers
        self.cooldowns = cooldowns
        self.started_at = started_at
        self._clock = clock
        self._sleep = sleep
        self._collect_host_stats = collect_host_stats

    def snipe_text(self, channel_id, *, console: bool = False) -> str | None:
        snap = self.cache.get_snipe(channel_id)
        if snap is None:
            return None
        content = snap.content or "[no text]"
        if console:
            file_part = f" | 📁 {snap.image}" if snap.image else ""
            return f"🕵️ Snipe ({snap.time}) | {snap.author_tag}: {content}{file_part}"
        text = f"🕵️ **Snipe ({snap.time})**\n👤 **{snap.author_tag}**: {content}"
        if snap.image:
            text += f"\n📁 File: `{snap.image}`"
        return text

    def snipe_file(self, channel_id):
        snap = self.cache.get_snipe(channel_id)
        if snap is None or not snap.image:
            return None
        path = self.media.path_for(snap.image)
        return path if path.is_file() else None

    def esnipe_text(self, channel_id, *, console: bool = False) -> str | None:
        snap = self.cache.get_edit_snipe(channel_id)
        if snap is None:
            return None
        if console:
            return f"📝 Edit Snipe ({snap.time}) | {snap.author_tag}: {snap.content}"
        return f"📝 **Edit Snipe ({snap.time})**\n👤 **{snap.author_tag}**: {snap.content}"

    async def logs_text(self, arg: str | None, *, max_limit: int, console: bool = False) -> str:
        if (arg or "").strip().lower() == "clear":
            try:
                async with self.db_lock:
                    removed = await asyncio.to_thread(self.clear_message_log_sync, self.db_conn)
            except Exception as e:
                print(f"[Logs] clear failed: {e}")
                return "❌ Deleted-message log is unavailable right now."
            return f"🗑️ Cleared the deleted-message log ({removed} rows)."

        limit = parse_count(arg, LOGS_DEFAULT_LIMIT, max_limit)
        try:
            async with self.db_lock:
                rows = await asyncio.to_thread(self.fetch_recent_message_logs_sync, self.db_conn, limit)
        except Exception as e:
            print(f"[Logs] fetch failed: {e}")
            return "❌ Deleted-message log is unavailable right now."

        if not rows:
            return "📭 No logs yet."
        if console:
            header = f"📋 {len(rows)} most recent deleted messages:"
            return "\n".join([header] + [format_log_line(r, console=True) for r in rows])
        header = f"📋 **{len(rows)} most recent deleted messages:**"
        out = "\n".join([header] + [format_log_line(r, console=False) for r in rows])
        return out[:DISCORD_MAX_MESSAGE_LEN]

    def _cooldown_text(self, user_key, action: str, window: float) -> str | None:
        remaining = self.cooldowns.hit(user_key, action, window)
        if remaining <= 0:
            return None
        return f"⏳ Wait {math.ceil(remaining)} more second(s)!"

    async def ask(self, question: str, *, user_key, limit: int = DISCORD_MAX_MESSAGE_LEN) -> tuple[bool, str]:
        question = (question or "").strip()
        if not question:
            return (False, "❌ Example: ask What should I eat today?")
        wait = self._cooldown_text(user_key, "ask", ASK_COOLDOWN_SECONDS)
        if wait:
            return (False, wait)
        try:
            answer = await self.tiers.generate(build_ask_prompt(question))
        except Exception as e:
            print(f"[AI] ask failed: {e}")
            return (False, f"❌ AI error: `{e}`")
        return (True, clip_answer(f"❓ **{question}**\n🤖 ", answer, limit))

    async def translate(self, target_lang: str | None, text: str, *, user_key) -> tuple[bool, str]:
        lang = (target_lang or "").strip() or DEFAULT_TRANSLATE_LANG
        if not (text or "").strip():
            return (False, "❌ Reply to the message to translate, or: `tr en <text>`")
        wait = self._cooldown_text(user_key, "translate", TRANSLATE_COOLDOWN_SECONDS)
        if wait:
            return (False, wait)
        try:
            translated = await self.tiers.generate(build_translate_prompt(lang, text))
        except Exception as e:
            print(f"[AI] translate failed: {e}")
            return (False, f"❌ Translate error: `{e}`")
        return (True, translated.strip())

    async def clean_downloads(self) -> str:
        try:
            deleted, kept = await asyncio.to_thread(self.media.clear_unpinned)
        except OSError as e:
            print(f"[Sweep] cleandl failed: {e}")
            return "❌ Could not read the downloads folder."
        if deleted == 0 and kept == 0:
            return "✅ Downloads folder is already clean!"
        text = f"🗑️ Removed **{deleted}** media file(s)."
        if kept:
            text += f" Kept {kept} still referenced by the cache."
        return text

    async def stats_text(self, *, latency_seconds: float, console: bool = False) -> str:
        host = await asyncio.to_thread(self._collect_host_stats)
        latency_ms = int(latency_seconds * 1000) if math.isfinite(latency_seconds) else -1
        uptime = self._clock() - self.started_at
        if console:
            return format_stats_console(host, uptime_seconds=uptime, latency_ms=latency_ms)
        return format_stats_block(
            host,
            uptime_seconds=uptime,
            latency_ms=latency_ms,
            cache_channels=self.cache.channel_count(),
            admitted=len(self.ranker.admitted),
            admitted_limit=self.ranker.top_limit,
            model=self.tiers.current_model,
            tier=self.tiers.tier,
        )

    async def purge_own(self, channel: Any, *, own_id, amount: int = PURGE_DEFAULT_AMOUNT, skip_id=None) -> int:
        mine = []
        async for msg in channel.history(limit=PURGE_SCAN_LIMIT):
            if skip_id is not None and int(msg.id) == int(skip_id):
                continue
            if int(msg.author.id) == int(own_id):
                mine.append(msg)
                if len(mine) >= amount:
                    break

        deleted = 0
        for msg in mine:
            try:
                await msg.delete()
                deleted += 1
            except Exception as e:
                print(f"[Purge] Could not delete {msg.id}: {e}")
            await self._sleep(PURGE_PAUSE_SECONDS)
        return deleted
