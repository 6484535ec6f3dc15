from __future__ import annotations

import asyncio
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from config.defaults import MSG_CACHE_LIMIT
from misc.origin import OutboundTracker
from snipe.media import MediaStore
from snipe.models import AttachmentInfo
from snipe.models import CachedMessage
from snipe.models import EditSnipeSnapshot
from snipe.models import SnipeSnapshot
from snipe.models import author_tag


def append_daily_log_sync(log_dir: str | Path, entry: dict[str, Any], now: datetime | None = None) -> Path:
    now = now or datetime.now()
    folder = Path(log_dir)
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / f"{now.strftime('%Y-%m-%d')}.log"
    attach = " [attachment]" if entry.get("has_attach") else ""
    line = (
        f"[{now.strftime('%H:%M:%S')}] {entry.get('guild_name')} #{entry.get('channel_name')} "
        f"{entry.get('author_tag')}: {entry.get('content') or ''}{attach}\n"
    )
    with path.open("a", encoding="utf-8") as fh:
        fh.write(line)
    return path


class ChannelRing:
    def __init__(self, *, channel_id: str, guild_id: str | None, limit: int) -> None:
        self.channel_id = channel_id
        self.guild_id = guild_id
        self.entries: deque[CachedMessage] = deque()
        self.limit = limit

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, message_id: str) -> CachedMessage | None:
        for entry in self.entries:
            if entry.message_id == message_id:
                return entry
        return None

    def push(self, entry: CachedMessage) -> list[CachedMessage]:
        self.entries.append(entry)
        evicted = []
        while len(self.entries) > self.limit:
            evicted.append(self.entries.popleft())
        return evicted

    def remove(self, entry: CachedMessage) -> None:
        try:
            self.entries.remove(entry)
        except ValueError:
            pass


class MessageCache:
    """Recent messages per channel, and the last deleted/edited one per channel.

    Only DMs and admitted guilds are cached. Attachments are copied locally on
    arrival because their CDN links stop resolving soon after a delete.
    """

    def __init__(
        self,
        *,
        is_admitted: Callable[[Any], bool],
        media: MediaStore,
        outbound: OutboundTracker,
        db_lock,
        db_conn,
        upsert_snipe_sync: Callable,
        insert_message_log_sync: Callable,
        log_dir: str | Path | None = None,
        ring_limit: int = MSG_CACHE_LIMIT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.is_admitted = is_admitted
        self.media = media
        self.outbound = outbound
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.upsert_snipe_sync = upsert_snipe_sync
        self.insert_message_log_sync = insert_message_log_sync
        self.log_dir = Path(log_dir) if log_dir else None
        self.ring_limit = max(1, int(ring_limit))
        self._clock = clock

        self._rings: dict[str, ChannelRing] = {}
        self._snipes: dict[str, SnipeSnapshot] = {}
        self._edit_snipes: dict[str, EditSnipeSnapshot] = {}

    def channel_count(self) -> int:
        return len(self._rings)

    def entry_count(self) -> int:
        return sum(len(ring) for ring in self._rings.values())

    def ring_for(self, channel_id) -> list[CachedMessage]:
        ring = self._rings.get(str(channel_id))
        return list(ring.entries) if ring else []

    def get_snipe(self, channel_id) -> SnipeSnapshot | None:
        return self._snipes.get(str(channel_id))

    def get_edit_snipe(self, channel_id) -> EditSnipeSnapshot | None:
        return self._edit_snipes.get(str(channel_id))

    def _stamp(self) -> str:
        return datetime.fromtimestamp(self._clock()).strftime("%H:%M:%S")

    async def observe(self, message: Any) -> CachedMessage | None:
        author = getattr(message, "author", None)
        if author is None or bool(getattr(author, "bot", False)):
            return None
        if self.outbound.is_automation(message):
            return None
        guild = getattr(message, "guild", None)
        if guild is not None and not self.is_admitted(guild.id):
            return None

        channel = message.channel
        channel_id = str(channel.id)
        ring = self._rings.get(channel_id)
        if ring is None:
            ring = ChannelRing(
                channel_id=channel_id,
                guild_id=str(guild.id) if guild is not None else None,
                limit=self.ring_limit,
            )
            self._rings[channel_id] = ring

        entry = CachedMessage(
            message_id=str(message.id),
            channel_id=channel_id,
            guild_id=ring.guild_id,
            guild_name=str(getattr(guild, "name", "") or "") if guild is not None else "DM",
            channel_name=str(getattr(channel, "name", "") or "") or channel_id,
            content=str(getattr(message, "content", "") or ""),
            author_id=str(getattr(author, "id", "") or "") or None,
            author_tag=author_tag(author),
            author_bot=False,
            attachments=[AttachmentInfo.from_attachment(a) for a in getattr(message, "attachments", None) or []],
            captured_at=self._clock(),
        )

        # Slot reserved before the download so ring order follows arrival order.
        for old in ring.push(entry):
            old.live = False
            self.media.release(old.local_file)

        if not entry.attachments:
            return entry
        entry.download = asyncio.get_running_loop().create_future()
        try:
            file_name = await self.media.materialize(message)
            if file_name is None:
                return entry
            if entry.live or entry.claimed:
                entry.local_file = file_name
            else:
                # evicted or purged while downloading
                self.media.release(file_name)
            return entry
        finally:
            if not entry.download.done():
                entry.download.set_result(entry.local_file)

    async def resolve_delete(
        self,
        message_id,
        channel_id,
        fallback: Any = None,
        *,
        guild_id=None,
    ) -> SnipeSnapshot | None:
        message_id = str(message_id)
        channel_id = str(channel_id)
        ring = self._rings.get(channel_id)
        cached = ring.find(message_id) if ring is not None else None

        if cached is not None:
            if ring is not None:
                ring.remove(cached)
            cached.live = False
            if self.outbound.is_automation(message_id=message_id):
                self.media.release(cached.local_file)
                return None
            if cached.download is not None and not cached.download.done():
                # deleted mid-download; the finished file belongs to this snipe
                cached.claimed = True
                await asyncio.shield(cached.download)
            tag = cached.author_tag
            content = cached.content
            image = cached.local_file
            has_attach = bool(cached.attachments)
            location_guild = cached.guild_id
            guild_name = cached.guild_name
            channel_name = cached.channel_name
        else:
            if fallback is None:
                return None
            author = getattr(fallback, "author", None)
            if author is None or bool(getattr(author, "bot", False)):
                return None
            if self.outbound.is_automation(fallback, message_id=message_id):
                return None
            tag = author_tag(author)
            content = str(getattr(fallback, "content", "") or "")
            image = None
            has_attach = bool(getattr(fallback, "attachments", None))
            fb_guild = getattr(fallback, "guild", None)
            location_guild = str(fb_guild.id) if fb_guild is not None else (str(guild_id) if guild_id else None)
            guild_name = str(getattr(fb_guild, "name", "") or location_guild or "") if location_guild else "DM"
            channel = getattr(fallback, "channel", None)
            channel_name = str(getattr(channel, "name", "") or "") or channel_id

        snapshot = SnipeSnapshot(
            channel_id=channel_id,
            author_tag=tag,
            content=content,
            image=image,
            time=self._stamp(),
            saved_at_ms=int(self._clock() * 1000),
        )
        previous = self._snipes.get(channel_id)
        self._snipes[channel_id] = snapshot
        if previous is not None:
            self.media.release(previous.image)

        try:
            async with self.db_lock:
                await asyncio.to_thread(self.upsert_snipe_sync, self.db_conn, snapshot.to_row())
        except Exception as e:
            print(f"[Cache] Could not persist snipe for channel {channel_id}: {e}")

        if location_guild is None or self.is_admitted(location_guild):
            if location_guild is None:
                guild_name = "DM"
                channel_name = f"DM-{tag}"
            await self._log_deleted(
                {
                    "guild_name": guild_name or str(location_guild),
                    "channel_name": channel_name,
                    "author_tag": tag,
                    "content": content,
                    "has_attach": has_attach,
                    "deleted_at": datetime.fromtimestamp(self._clock()).isoformat(timespec="seconds"),
                }
            )
        return snapshot

    async def _log_deleted(self, entry: dict[str, Any]) -> None:
        try:
            async with self.db_lock:
                await asyncio.to_thread(self.insert_message_log_sync, self.db_conn, entry)
        except Exception as e:
            print(f"[Cache] Could not write deleted-message log: {e}")
        if self.log_dir is None:
            return
        try:
            await asyncio.to_thread(append_daily_log_sync, self.log_dir, entry)
        except Exception as e:
            print(f"[Cache] Could not append daily log: {e}")

    def resolve_edit(
        self,
        message_id,
        channel_id,
        old_content: str | None,
        new_content: str | None,
        fallback: Any = None,
    ) -> EditSnipeSnapshot | None:
        if new_content is None:
            return None
        message_id = str(message_id)
        channel_id = str(channel_id)
        if self.outbound.is_automation(fallback, message_id=message_id):
            return None

        ring = self._rings.get(channel_id)
        cached = ring.find(message_id) if ring is not None else None
        if cached is not None:
            if cached.author_bot:
                return None
            tag = cached.author_tag
        else:
            author = getattr(fallback, "author", None)
            if author is None or bool(getattr(author, "bot", False)):
                return None
            tag = author_tag(author)

        reported_old = old_content
        if reported_old is None and cached is not None:
            reported_old = cached.content
        if reported_old is None or reported_old == new_content:
            return None

        prior = cached.content if cached is not None and cached.content else reported_old
        if prior == new_content:
            return None

        snapshot = EditSnipeSnapshot(channel_id=channel_id, author_tag=tag, content=prior, time=self._stamp())
        self._edit_snipes[channel_id] = snapshot
        if cached is not None:
            cached.content = new_content
        return snapshot

    def purge_guild(self, guild_id) -> int:
        guild_id = str(guild_id)
        doomed = [cid for cid, ring in self._rings.items() if ring.guild_id == guild_id]
        for channel_id in doomed:
            ring = self._rings.pop(channel_id)
            for entry in ring.entries:
                entry.live = False
                self.media.release(entry.local_file)
        return len(doomed)

    def rehydrate(self, rows: Iterable[dict[str, Any]]) -> int:
        loaded = 0
        for row in rows:
            try:
                snapshot = SnipeSnapshot.from_row(row)
            except (KeyError, TypeError, ValueError) as e:
                print(f"[Cache] Skipping malformed snipe row: {e}")
                continue
            previous = self._snipes.get(snapshot.channel_id)
            if previous is not None:
                self.media.release(previous.image)
            self._snipes[snapshot.channel_id] = snapshot
            self.media.pin(snapshot.image)
            loaded += 1
        return loaded
