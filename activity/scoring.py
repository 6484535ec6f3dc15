from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from config.defaults import RECENCY_BONUS_POINTS
from config.defaults import RECENCY_WINDOW_DAYS
from config.defaults import TOP_GUILD_LIMIT

DAY_MS = 24 * 60 * 60 * 1000


@dataclass(slots=True)
class GuildActivity:
    guild_id: str
    name: str = ""
    count: int = 0
    last_seen_ms: int = 0

    def record(self, *, name: str, seen_ms: int, increment: int = 1) -> None:
        self.count += max(0, int(increment))
        self.last_seen_ms = max(self.last_seen_ms, int(seen_ms))
        if name:
            self.name = name

    def to_row(self) -> dict:
        return {
            "guild_id": self.guild_id,
            "guild_name": self.name,
            "msg_count": self.count,
            "last_seen": self.last_seen_ms,
        }

    @classmethod
    def from_row(cls, row: dict) -> "GuildActivity":
        return cls(
            guild_id=str(row["guild_id"]),
            name=str(row.get("guild_name") or ""),
            count=max(0, int(row.get("msg_count") or 0)),
            last_seen_ms=max(0, int(row.get("last_seen") or 0)),
        )


def recency_bonus(last_seen_ms: int, now_ms: int) -> float:
    age_ms = max(0, int(now_ms) - int(last_seen_ms))
    return max(0.0, 1.0 - age_ms / (RECENCY_WINDOW_DAYS * DAY_MS))


def score_guild(activity: GuildActivity, now_ms: int) -> float:
    return activity.count + RECENCY_BONUS_POINTS * recency_bonus(activity.last_seen_ms, now_ms)


def rank_guilds(
    activities: Iterable[GuildActivity],
    now_ms: int,
    limit: int = TOP_GUILD_LIMIT,
) -> list[tuple[str, float]]:
    """Top `limit` (guild_id, score) pairs, highest first; ties keep input order."""
    scored = [(a.guild_id, score_guild(a, now_ms)) for a in activities]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[: max(0, int(limit))]
