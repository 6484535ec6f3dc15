from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    prefix: str = "."
    send_chunked: Callable | None = None
    outbound: Any = None

    # Components
    cache: Any = None
    ranker: Any = None
    tiers: Any = None
    media: Any = None

    # Services
    afk: Any = None
    presence: Any = None
    operator: Any = None


@dataclass(frozen=True)
class CommandGates:
    user_is_owner: Callable[[Any], bool] = _default_false


async def edit_or_send(ctx, text: str, *, deps: CommandDeps):
    """Command output replaces the invoking message; falls back to a new message."""
    try:
        return await deps.outbound.edit(ctx.message, text)
    except Exception as e:
        print(f"[Commands] edit failed ({e}); sending instead")
    try:
        return await deps.outbound.send(ctx.channel, text)
    except Exception as e:
        print(f"[Commands] send failed: {e}")
        return None


async def delete_quietly(message, *, outbound=None) -> bool:
    # The delete echo of an owner command must not become a snipe.
    if outbound is not None:
        outbound.mark_message(getattr(message, "id", None))
    try:
        await message.delete()
        return True
    except Exception as e:
        print(f"[Commands] could not delete {getattr(message, 'id', '?')}: {e}")
        return False
