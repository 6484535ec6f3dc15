from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable

from activity.scoring import GuildActivity
from activity.scoring import rank_guilds
from config.defaults import BOOTSTRAP_HISTORY_LIMIT
from config.defaults import BOOTSTRAP_PAUSE_SECONDS
from config.defaults import RESCORE_DEBOUNCE_SECONDS
from config.defaults import TOP_GUILD_LIMIT
from misc.deferred import DeferredTask


def _message_ms(message: Any, fallback_ms: int) -> int:
    created = getattr(message, "created_at", None)
    if isinstance(created, datetime):
        return int(created.timestamp() * 1000)
    return fallback_ms


class GuildActivityRanker:
    """Scores guilds by how often and how recently the account posts there.

    The admitted set (top `top_limit` by score) decides which guilds the
    message cache tracks. It is recomputed on a debounced timer after
    activity changes; guilds that fall out are purged from the cache via
    `on_guild_evicted`.
    """

    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        upsert_guild_activity_sync: Callable,
        self_user_id: Callable[[], int | None],
        on_guild_evicted: Callable[[str], int] | None = None,
        top_limit: int = TOP_GUILD_LIMIT,
        debounce_seconds: float = RESCORE_DEBOUNCE_SECONDS,
        history_limit: int = BOOTSTRAP_HISTORY_LIMIT,
        bootstrap_pause_seconds: float = BOOTSTRAP_PAUSE_SECONDS,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.upsert_guild_activity_sync = upsert_guild_activity_sync
        self.self_user_id = self_user_id
        self.on_guild_evicted = on_guild_evicted
        self.top_limit = max(1, int(top_limit))
        self.history_limit = max(1, int(history_limit))
        self.bootstrap_pause_seconds = max(0.0, float(bootstrap_pause_seconds))
        self._clock = clock
        self._sleep = sleep

        # insertion order doubles as the tie-break order for equal scores
        self._activity: dict[str, GuildActivity] = {}
        self._admitted: frozenset[str] = frozenset()
        self._ranked: list[tuple[str, float]] = []
        self._rescore = DeferredTask(debounce_seconds, self._run_debounced, name="Whitelist", sleep=sleep)
        self.rescore_count = 0

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    @property
    def admitted(self) -> frozenset[str]:
        return self._admitted

    @property
    def ranked(self) -> list[tuple[str, float]]:
        return list(self._ranked)

    @property
    def rescore_pending(self) -> bool:
        return self._rescore.pending

    def is_admitted(self, guild_id) -> bool:
        return guild_id is not None and str(guild_id) in self._admitted

    def activity_for(self, guild_id) -> GuildActivity | None:
        return self._activity.get(str(guild_id))

    def has_activity(self) -> bool:
        return bool(self._activity)

    def load_rows(self, rows: Iterable[dict]) -> int:
        for row in rows:
            activity = GuildActivity.from_row(row)
            self._activity[activity.guild_id] = activity
        return len(self._activity)

    def guild_name(self, guild_id: str) -> str:
        activity = self._activity.get(str(guild_id))
        return (activity.name if activity else "") or str(guild_id)

    def admitted_names(self) -> list[str]:
        return [self.guild_name(gid) for gid, _score in self._ranked]

    async def _persist(self, activity: GuildActivity) -> None:
        row = activity.to_row()
        try:
            async with self.db_lock:
                await asyncio.to_thread(self.upsert_guild_activity_sync, self.db_conn, row)
        except Exception as e:
            print(f"[Whitelist] Could not persist activity for guild {activity.guild_id}: {e}")

    async def track(self, message: Any) -> GuildActivity | None:
        guild = getattr(message, "guild", None)
        if guild is None:
            return None
        author = getattr(message, "author", None)
        own_id = self.self_user_id()
        if author is None or own_id is None or int(author.id) != int(own_id):
            return None

        guild_id = str(guild.id)
        activity = self._activity.get(guild_id)
        if activity is None:
            activity = GuildActivity(guild_id=guild_id)
            self._activity[guild_id] = activity
        activity.record(
            name=str(getattr(guild, "name", "") or guild_id),
            seen_ms=_message_ms(message, self._now_ms()),
        )

        await self._persist(activity)
        self.schedule_rescore()
        return activity

    def schedule_rescore(self) -> bool:
        return self._rescore.schedule()

    async def _run_debounced(self) -> None:
        self.rescore()

    def rescore(self) -> tuple[set[str], set[str]]:
        ranked = rank_guilds(self._activity.values(), self._now_ms(), self.top_limit)
        new_top = frozenset(gid for gid, _score in ranked)
        added = set(new_top - self._admitted)
        removed = set(self._admitted - new_top)

        for guild_id in removed:
            purged = 0
            if self.on_guild_evicted is not None:
                purged = self.on_guild_evicted(guild_id)
            print(f"[Whitelist] Stop tracking: {self.guild_name(guild_id)} (channels purged={purged})")
        for guild_id in added:
            print(f"[Whitelist] Tracking: {self.guild_name(guild_id)}")

        self._admitted = new_top
        self._ranked = ranked
        self.rescore_count += 1
        return added, removed

    def _readable_channels(self, guild: Any) -> list[Any]:
        me = getattr(guild, "me", None)
        out = []
        for channel in getattr(guild, "text_channels", None) or []:
            permissions_for = getattr(channel, "permissions_for", None)
            if me is not None and callable(permissions_for):
                try:
                    if not permissions_for(me).view_channel:
                        continue
                except Exception:
                    continue
            out.append(channel)
        return out

    async def bootstrap(self, guilds: Iterable[Any]) -> bool:
        """Seed activity from recent history when nothing is persisted yet.

        Returns True when a history scan ran. Always finishes with a rescore.
        """
        if self._activity:
            self.rescore()
            print(f"[Whitelist] Loaded from DB: [{', '.join(self.admitted_names())}]")
            return False

        own_id = self.self_user_id()
        if own_id is None:
            print("[Whitelist] Bootstrap skipped: account user is not ready")
            self.rescore()
            return False

        print("[Whitelist] First run: scanning history to find the most active servers...")
        for guild in guilds:
            guild_id = str(guild.id)
            for channel in self._readable_channels(guild):
                try:
                    mine = [
                        msg
                        async for msg in channel.history(limit=self.history_limit)
                        if int(msg.author.id) == int(own_id)
                    ]
                except Exception as e:
                    print(f"[Whitelist] History fetch failed for channel {getattr(channel, 'id', '?')}: {e}")
                    mine = []

                if mine:
                    activity = self._activity.get(guild_id)
                    if activity is None:
                        activity = GuildActivity(guild_id=guild_id)
                        self._activity[guild_id] = activity
                    activity.record(
                        name=str(getattr(guild, "name", "") or guild_id),
                        seen_ms=max(_message_ms(m, 0) for m in mine),
                        increment=len(mine),
                    )
                    await self._persist(activity)
                await self._sleep(self.bootstrap_pause_seconds)

        self.rescore()
        print(f"[Whitelist] Auto whitelist: [{', '.join(self.admitted_names())}]")
        return True

    def shutdown(self) -> None:
        self._rescore.cancel()
