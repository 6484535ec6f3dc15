from __future__ import annotations

import asyncio
import base64
from typing import Any, Awaitable, Callable


def image_part(data: bytes, mime_type: str) -> dict[str, Any]:
    encoded = base64.b64encode(data).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}"}}


def as_chat_messages(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, str):
        return [{"role": "user", "content": payload}]
    if isinstance(payload, list):
        return payload
    raise TypeError(f"unsupported generation payload: {type(payload).__name__}")


def make_openai_caller(client: Any) -> Callable[[str, Any], Awaitable[str]]:
    """Adapt a sync OpenAI client into the `(model, payload) -> text` call the tier controller uses."""

    async def _call(model: str, payload: Any) -> str:
        resp = await asyncio.to_thread(
            client.chat.completions.create,
            model=model,
            messages=as_chat_messages(payload),
        )
        return (resp.choices[0].message.content or "").strip()

    return _call
