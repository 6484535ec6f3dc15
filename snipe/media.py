from __future__ import annotations

import os
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from config.defaults import ATTACHMENT_MAX_BYTES
from config.defaults import DEFAULT_ATTACHMENT_EXT
from config.defaults import DOWNLOAD_MAX_AGE_SECONDS


def _safe_token(text: str, fallback: str = "unknown") -> str:
    token = re.sub(r"[^A-Za-z0-9_.-]+", "_", str(text or "")).strip("._")
    return token[:32] or fallback


class MediaStore:
    """Local copies of message attachments, with pin counts.

    A file is pinned while a live cache entry or snipe snapshot refers to it.
    Releasing a pin only drops bookkeeping; unpinned files are removed later
    by `sweep()` once they are older than `max_age_seconds`.
    """

    def __init__(
        self,
        download_dir: str | Path,
        *,
        max_bytes: int = ATTACHMENT_MAX_BYTES,
        max_age_seconds: float = DOWNLOAD_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.download_dir = Path(download_dir)
        self.download_dir.mkdir(parents=True, exist_ok=True)
        self.max_bytes = int(max_bytes)
        self.max_age_seconds = float(max_age_seconds)
        self._clock = clock
        self._pins: dict[str, int] = {}

    def path_for(self, file_name: str) -> Path:
        return self.download_dir / file_name

    def file_name_for(self, *, author_name: str, message_id, original_name: str) -> str:
        stamp = datetime.fromtimestamp(self._clock()).strftime("%H-%M-%S")
        ext = os.path.splitext(original_name or "")[1] or DEFAULT_ATTACHMENT_EXT
        return f"snipe_{stamp}_{_safe_token(author_name)}_{_safe_token(str(message_id), 'msg')}{ext}"

    def pin(self, file_name: str | None) -> None:
        if file_name:
            self._pins[file_name] = self._pins.get(file_name, 0) + 1

    def release(self, file_name: str | None) -> None:
        if not file_name or file_name not in self._pins:
            return
        remaining = self._pins[file_name] - 1
        if remaining > 0:
            self._pins[file_name] = remaining
        else:
            del self._pins[file_name]

    def is_pinned(self, file_name: str) -> bool:
        return file_name in self._pins

    @property
    def pinned_count(self) -> int:
        return len(self._pins)

    def first_eligible(self, attachments: list[Any]) -> Any | None:
        if not attachments:
            return None
        first = attachments[0]
        if int(getattr(first, "size", 0) or 0) > self.max_bytes:
            return None
        return first

    async def materialize(self, message: Any) -> str | None:
        """Download the message's first attachment now, while its URL still resolves.

        Returns the pinned file name, or None when there is nothing eligible
        or the single download attempt fails.
        """
        attachment = self.first_eligible(list(getattr(message, "attachments", None) or []))
        if attachment is None:
            return None

        file_name = self.file_name_for(
            author_name=getattr(message.author, "name", "") or "",
            message_id=getattr(message, "id", ""),
            original_name=getattr(attachment, "filename", "") or "",
        )
        path = self.path_for(file_name)
        try:
            await attachment.save(path)
        except Exception as e:
            print(f"[Cache] Attachment pre-download failed for message {getattr(message, 'id', '?')}: {e}")
            try:
                path.unlink(missing_ok=True)
            except OSError:
                pass
            return None

        self.pin(file_name)
        return file_name

    def sweep(self, now: float | None = None) -> list[str]:
        """Delete unpinned files whose creation time is older than the age limit."""
        cutoff = (self._clock() if now is None else now) - self.max_age_seconds
        removed: list[str] = []
        for path in sorted(self.download_dir.iterdir()):
            if not path.is_file() or self.is_pinned(path.name):
                continue
            try:
                if path.stat().st_ctime < cutoff:
                    path.unlink()
                    removed.append(path.name)
            except OSError as e:
                print(f"[Sweep] Could not remove {path.name}: {e}")
        return removed

    def clear_unpinned(self) -> tuple[int, int]:
        """Delete every unpinned file now; returns (deleted, kept_pinned)."""
        deleted = 0
        kept = 0
        for path in sorted(self.download_dir.iterdir()):
            if not path.is_file():
                continue
            if self.is_pinned(path.name):
                kept += 1
                continue
            try:
                path.unlink()
                deleted += 1
            except OSError as e:
                print(f"[Sweep] Could not remove {path.name}: {e}")
        return (deleted, kept)
