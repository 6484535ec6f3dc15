from __future__ import annotations

import tempfile
import time
import unittest
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

from snipe.media import MediaStore


FIXED_TS = 1_800_000_000.0


class _FakeAttachment:
    def __init__(self, filename: str, size: int = 10, *, fail: bool = False):
        self.filename = filename
        self.size = size
        self.fail = fail
        self.saved_to: list[Path] = []

    async def save(self, fp):
        self.saved_to.append(Path(fp))
        Path(fp).write_bytes(b"partial")
        if self.fail:
            raise RuntimeError("404 Not Found")
        return 7


class MediaStoreTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "downloads"
        self.media = MediaStore(self.root, max_bytes=100, max_age_seconds=60, clock=lambda: FIXED_TS)

    def tearDown(self):
        self._tmp.cleanup()

    def test_creates_directory_and_names_files(self):
        self.assertTrue(self.root.is_dir())
        stamp = datetime.fromtimestamp(FIXED_TS).strftime("%H-%M-%S")
        self.assertEqual(
            self.media.file_name_for(author_name="some user!", message_id=42, original_name="cat.jpg"),
            f"snipe_{stamp}_some_user_42.jpg",
        )
        self.assertTrue(
            self.media.file_name_for(author_name="", message_id=1, original_name="noext").endswith("_unknown_1.png")
        )

    def test_pin_counts(self):
        self.media.pin("a.png")
        self.media.pin("a.png")
        self.media.pin(None)
        self.media.release("a.png")
        self.assertTrue(self.media.is_pinned("a.png"))
        self.media.release("a.png")
        self.assertFalse(self.media.is_pinned("a.png"))
        self.media.release("a.png")
        self.assertEqual(self.media.pinned_count, 0)

    def test_first_eligible_respects_ceiling_and_only_first(self):
        self.assertIsNone(self.media.first_eligible([]))
        self.assertIsNone(self.media.first_eligible([_FakeAttachment("big.png", 101), _FakeAttachment("s.png", 1)]))
        small = _FakeAttachment("s.png", 100)
        self.assertIs(self.media.first_eligible([small]), small)

    async def test_materialize_saves_and_pins(self):
        attachment = _FakeAttachment("pic.webp")
        message = SimpleNamespace(id=5, author=SimpleNamespace(name="bob"), attachments=[attachment])
        name = await self.media.materialize(message)
        self.assertTrue(name.endswith("_bob_5.webp"))
        self.assertTrue(self.media.path_for(name).exists())
        self.assertTrue(self.media.is_pinned(name))

    async def test_materialize_failure_leaves_nothing_behind(self):
        attachment = _FakeAttachment("pic.png", fail=True)
        message = SimpleNamespace(id=6, author=SimpleNamespace(name="bob"), attachments=[attachment])
        self.assertIsNone(await self.media.materialize(message))
        self.assertEqual(list(self.root.iterdir()), [])
        self.assertEqual(self.media.pinned_count, 0)

    async def test_materialize_without_attachments(self):
        message = SimpleNamespace(id=7, author=SimpleNamespace(name="bob"), attachments=[])
        self.assertIsNone(await self.media.materialize(message))

    def test_sweep_skips_pinned_and_young_files(self):
        for name in ("old.png", "pinned.png"):
            (self.root / name).write_bytes(b"x")
        self.media.pin("pinned.png")

        self.assertEqual(self.media.sweep(now=time.time()), [])
        removed = self.media.sweep(now=time.time() + 3600)
        self.assertEqual(removed, ["old.png"])
        self.assertEqual(sorted(p.name for p in self.root.iterdir()), ["pinned.png"])

    def test_clear_unpinned(self):
        for name in ("a.png", "b.png", "keep.png"):
            (self.root / name).write_bytes(b"x")
        self.media.pin("keep.png")
        self.assertEqual(self.media.clear_unpinned(), (2, 1))
        self.assertEqual(self.media.clear_unpinned(), (0, 1))


if __name__ == "__main__":
    unittest.main()
