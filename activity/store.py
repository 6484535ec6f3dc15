from __future__ import annotations

import sqlite3
from typing import Any


def upsert_guild_activity_sync(conn: sqlite3.Connection, row: dict[str, Any]) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO guild_activity (guild_id, guild_name, msg_count, last_seen)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(guild_id) DO UPDATE SET
            guild_name = excluded.guild_name,
            msg_count = excluded.msg_count,
            last_seen = excluded.last_seen
        """,
        (
            str(row["guild_id"]),
            row.get("guild_name") or "",
            int(row.get("msg_count") or 0),
            int(row.get("last_seen") or 0),
        ),
    )
    conn.commit()


def fetch_guild_activity_sync(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    # rowid order keeps first-seen enumeration order for stable ranking ties
    cur = conn.cursor()
    cur.execute("SELECT guild_id, guild_name, msg_count, last_seen FROM guild_activity ORDER BY rowid ASC")
    return [
        {
            "guild_id": str(guild_id),
            "guild_name": guild_name or "",
            "msg_count": int(msg_count or 0),
            "last_seen": int(last_seen or 0),
        }
        for guild_id, guild_name, msg_count, last_seen in cur.fetchall()
    ]
