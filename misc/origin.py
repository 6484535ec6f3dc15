from __future__ import annotations

import secrets
import time
from typing import Any, Callable

from config.defaults import OUTBOUND_ID_TTL_SECONDS
from config.defaults import OUTBOUND_TTL_SECONDS


class OutboundTracker:
    """Record of what the automation itself sent or rewrote.

    Every automated send carries a fresh nonce registered *before* the send,
    so the gateway echo is recognised even if it arrives before the HTTP
    response; the resulting message id is registered afterwards. Messages the
    automation edits (command replies) are registered by id.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = OUTBOUND_TTL_SECONDS,
        id_ttl_seconds: float = OUTBOUND_ID_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = max(1.0, float(ttl_seconds))
        self.id_ttl_seconds = max(self.ttl_seconds, float(id_ttl_seconds))
        self._clock = clock
        self._nonces: dict[str, float] = {}
        self._message_ids: dict[str, float] = {}

    def _prune(self) -> None:
        now = self._clock()
        # nonces only matter until the gateway echo; ids until the message is deleted
        for bucket, ttl in ((self._nonces, self.ttl_seconds), (self._message_ids, self.id_ttl_seconds)):
            cutoff = now - ttl
            for key in [k for k, ts in bucket.items() if ts < cutoff]:
                del bucket[key]

    def new_nonce(self) -> str:
        self._prune()
        nonce = str(secrets.randbits(60))
        self._nonces[nonce] = self._clock()
        return nonce

    def mark_message(self, message_id) -> None:
        if message_id is None:
            return
        self._prune()
        self._message_ids[str(message_id)] = self._clock()

    def is_automation(self, message: Any = None, *, message_id=None) -> bool:
        self._prune()
        if message is not None:
            nonce = getattr(message, "nonce", None)
            if nonce is not None and str(nonce) in self._nonces:
                return True
            message_id = getattr(message, "id", message_id)
        return message_id is not None and str(message_id) in self._message_ids

    async def send(self, channel: Any, text: str, **kwargs) -> Any:
        msg = await channel.send(text, nonce=self.new_nonce(), **kwargs)
        self.mark_message(getattr(msg, "id", None))
        return msg

    async def reply(self, message: Any, text: str, **kwargs) -> Any:
        msg = await message.reply(text, nonce=self.new_nonce(), **kwargs)
        self.mark_message(getattr(msg, "id", None))
        return msg

    async def edit(self, message: Any, text: str) -> Any:
        self.mark_message(getattr(message, "id", None))
        return await message.edit(content=text)
