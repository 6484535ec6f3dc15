from __future__ import annotations

import json
import sqlite3
from typing import Any


AFK_STATE_KEY = "afk_state"
USER_STATUS_KEY = "user_status"


def get_state_sync(conn: sqlite3.Connection, key: str) -> str | None:
    cur = conn.cursor()
    cur.execute("SELECT value FROM state WHERE key = ? LIMIT 1", (str(key),))
    row = cur.fetchone()
    return None if row is None else row[0]


def set_state_sync(conn: sqlite3.Connection, key: str, value: str) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO state (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (str(key), str(value)),
    )
    conn.commit()


def get_json_state_sync(conn: sqlite3.Connection, key: str, default: dict[str, Any] | None = None) -> dict[str, Any]:
    """Decode a JSON object stored under `key`; corrupt or missing values yield `default`."""
    fallback = dict(default or {})
    raw = get_state_sync(conn, key)
    if not raw:
        return fallback
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return fallback
    if not isinstance(value, dict):
        return fallback
    return value


def set_json_state_sync(conn: sqlite3.Connection, key: str, value: dict[str, Any]) -> None:
    set_state_sync(conn, key, json.dumps(value, ensure_ascii=False))
