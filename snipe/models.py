from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def author_tag(author: Any) -> str:
    if author is None:
        return "Unknown"
    name = str(getattr(author, "name", "") or "").strip()
    if not name:
        return "Unknown"
    discriminator = str(getattr(author, "discriminator", "0") or "0")
    if discriminator in {"0", "0000"}:
        return name
    return f"{name}#{discriminator}"


@dataclass(slots=True)
class AttachmentInfo:
    url: str
    filename: str
    size: int
    content_type: str | None = None

    @classmethod
    def from_attachment(cls, attachment: Any) -> "AttachmentInfo":
        return cls(
            url=str(getattr(attachment, "url", "") or ""),
            filename=str(getattr(attachment, "filename", "") or ""),
            size=int(getattr(attachment, "size", 0) or 0),
            content_type=getattr(attachment, "content_type", None),
        )


@dataclass(slots=True)
class CachedMessage:
    message_id: str
    channel_id: str
    guild_id: str | None
    guild_name: str
    channel_name: str
    content: str
    author_id: str | None
    author_tag: str
    author_bot: bool = False
    attachments: list[AttachmentInfo] = field(default_factory=list)
    local_file: str | None = None
    captured_at: float = 0.0
    live: bool = True
    # resolves once the eager attachment download has finished
    download: Any = None
    # set when a delete adopts the entry while its download is still running
    claimed: bool = False


@dataclass(slots=True)
class SnipeSnapshot:
    channel_id: str
    author_tag: str
    content: str
    image: str | None
    time: str
    saved_at_ms: int = 0

    def to_row(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "author_tag": self.author_tag,
            "content": self.content,
            "image": self.image,
            "time": self.time,
            "saved_at": self.saved_at_ms,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SnipeSnapshot":
        return cls(
            channel_id=str(row["channel_id"]),
            author_tag=str(row.get("author_tag") or "Unknown"),
            content=str(row.get("content") or ""),
            image=row.get("image") or None,
            time=str(row.get("time") or ""),
            saved_at_ms=int(row.get("saved_at") or 0),
        )


@dataclass(slots=True)
class EditSnipeSnapshot:
    channel_id: str
    author_tag: str
    content: str
    time: str
