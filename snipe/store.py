from __future__ import annotations

import sqlite3
from typing import Any


def upsert_snipe_sync(conn: sqlite3.Connection, payload: dict[str, Any]) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO snipe_history (channel_id, author_tag, content, image, time, saved_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(channel_id) DO UPDATE SET
            author_tag = excluded.author_tag,
            content = excluded.content,
            image = excluded.image,
            time = excluded.time,
            saved_at = excluded.saved_at
        """,
        (
            str(payload["channel_id"]),
            payload.get("author_tag") or "Unknown",
            payload.get("content") or "",
            payload.get("image"),
            payload.get("time") or "",
            int(payload.get("saved_at") or 0),
        ),
    )
    conn.commit()


def fetch_snipes_sync(conn: sqlite3.Connection) -> list[dict[str, Any]]:
    cur = conn.cursor()
    cur.execute("SELECT channel_id, author_tag, content, image, time, saved_at FROM snipe_history")
    return [
        {
            "channel_id": str(channel_id),
            "author_tag": author_tag or "Unknown",
            "content": content or "",
            "image": image,
            "time": time or "",
            "saved_at": int(saved_at or 0),
        }
        for channel_id, author_tag, content, image, time, saved_at in cur.fetchall()
    ]


def insert_message_log_sync(conn: sqlite3.Connection, payload: dict[str, Any]) -> int:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO message_log (guild_name, channel_name, author_tag, content, has_attach, deleted_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            payload.get("guild_name") or "",
            payload.get("channel_name") or "",
            payload.get("author_tag") or "Unknown",
            payload.get("content") or "",
            1 if payload.get("has_attach") else 0,
            payload.get("deleted_at") or "",
        ),
    )
    conn.commit()
    return int(cur.lastrowid)


def fetch_recent_message_logs_sync(conn: sqlite3.Connection, limit: int = 10) -> list[dict[str, Any]]:
    """Most recent `limit` rows, returned oldest first for display."""
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, guild_name, channel_name, author_tag, content, has_attach, deleted_at
        FROM message_log
        ORDER BY id DESC
        LIMIT ?
        """,
        (max(1, int(limit)),),
    )
    rows = [
        {
            "id": int(row_id),
            "guild_name": guild_name or "",
            "channel_name": channel_name or "",
            "author_tag": author_tag or "Unknown",
            "content": content or "",
            "has_attach": bool(has_attach),
            "deleted_at": deleted_at or "",
        }
        for row_id, guild_name, channel_name, author_tag, content, has_attach, deleted_at in cur.fetchall()
    ]
    rows.reverse()
    return rows


def clear_message_log_sync(conn: sqlite3.Connection) -> int:
    cur = conn.cursor()
    cur.execute("DELETE FROM message_log")
    conn.commit()
    return int(cur.rowcount or 0)
