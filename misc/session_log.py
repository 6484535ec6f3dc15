from __future__ import annotations

import gzip
import re
import shutil
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import TextIO

ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
SESSION_GLOB = "session_*.txt"


def compress_old_sessions(log_dir: str | Path) -> list[Path]:
    """Gzip every plain session file left over from earlier runs."""
    out = []
    for path in sorted(Path(log_dir).glob(SESSION_GLOB)):
        target = path.with_name(path.name + ".gz")
        try:
            with path.open("rb") as src, gzip.open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
            path.unlink()
            out.append(target)
        except OSError as e:
            print(f"[Log] Could not compress {path.name}: {e}")
    return out


class _Tee:
    def __init__(self, stream: TextIO, sink: TextIO, lock: threading.Lock, clock) -> None:
        self._stream = stream
        self._sink = sink
        self._lock = lock
        self._clock = clock
        self._at_line_start = True

    def write(self, text: str) -> int:
        n = self._stream.write(text)
        clean = ANSI_RE.sub("", text)
        if clean:
            with self._lock:
                for piece in clean.splitlines(keepends=True):
                    if self._at_line_start:
                        self._sink.write(f"[{self._clock().strftime('%H:%M:%S')}] ")
                    self._sink.write(piece)
                    self._at_line_start = piece.endswith("\n")
                self._sink.flush()
        return n

    def flush(self) -> None:
        self._stream.flush()

    def __getattr__(self, name):
        return getattr(self._stream, name)


class SessionLog:
    """Copies everything written to stdout/stderr into one file per run."""

    def __init__(self, log_dir: str | Path, *, clock=datetime.now) -> None:
        self.log_dir = Path(log_dir)
        self._clock = clock
        self.path: Path | None = None
        self._sink: TextIO | None = None
        self._saved: tuple[TextIO, TextIO] | None = None

    def start(self) -> Path:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        compress_old_sessions(self.log_dir)
        stamp = self._clock().strftime("%Y-%m-%d_%H-%M-%S")
        self.path = self.log_dir / f"session_{stamp}.txt"
        self._sink = self.path.open("a", encoding="utf-8")
        lock = threading.Lock()
        self._saved = (sys.stdout, sys.stderr)
        sys.stdout = _Tee(sys.stdout, self._sink, lock, self._clock)
        sys.stderr = _Tee(sys.stderr, self._sink, lock, self._clock)
        print(f"[Log] Session log: {self.path}")
        return self.path

    def stop(self) -> None:
        if self._saved is not None:
            sys.stdout, sys.stderr = self._saved
            self._saved = None
        if self._sink is not None:
            self._sink.close()
            self._sink = None
