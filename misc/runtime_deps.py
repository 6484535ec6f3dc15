from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    db_lock: Any
    db_conn: Any
    prefix: str
    user_is_owner: Callable

    # components
    outbound: Any
    cache: Any
    ranker: Any
    tiers: Any
    media: Any

    # services
    afk: Any
    presence: Any


@dataclass(frozen=True)
class RuntimeBootDeps:
    fetch_guild_activity_sync: Callable
    fetch_snipes_sync: Callable
    sweep_loop_func: Callable
    presence_loop_func: Callable
    console_enabled: bool
    console_loop_func: Callable | None = None
