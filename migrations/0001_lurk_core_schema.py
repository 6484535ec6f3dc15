from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS state (
            key   TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS guild_activity (
            guild_id   TEXT PRIMARY KEY,
            guild_name TEXT,
            msg_count  INTEGER NOT NULL DEFAULT 0,
            last_seen  INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS snipe_history (
            channel_id TEXT PRIMARY KEY,
            author_tag TEXT,
            content    TEXT,
            image      TEXT,
            time       TEXT,
            saved_at   INTEGER NOT NULL DEFAULT 0
        )
        """
    )
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS message_log (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            guild_name   TEXT,
            channel_name TEXT,
            author_tag   TEXT,
            content      TEXT,
            has_attach   INTEGER NOT NULL DEFAULT 0,
            deleted_at   TEXT
        )
        """
    )
    conn.commit()
