from __future__ import annotations

import asyncio
import sqlite3
import unittest
from pathlib import Path
from types import SimpleNamespace

from afk.service import AfkService
from ai.persona import AfkPersona
from db.migrate import apply_sqlite_migrations
from misc.origin import OutboundTracker
from presence.service import PresenceService
from presence.service import normalize_status
from state.store import AFK_STATE_KEY
from state.store import USER_STATUS_KEY
from state.store import get_json_state_sync
from state.store import set_json_state_sync


OWN_ID = 1


def _migrations_dir() -> str:
    return str(Path(__file__).resolve().parents[1] / "migrations")


class _Typing:
    def __init__(self, log):
        self.log = log

    async def __aenter__(self):
        self.log.append("typing")
        return self

    async def __aexit__(self, *exc):
        return False


class _FakeMessage:
    def __init__(self, *, author_id, content="", guild=None, mentions=None, attachments=None, bot=False, nonce=None, mid=50):
        self.id = mid
        self.author = SimpleNamespace(id=author_id, name=f"user{author_id}", discriminator="0", bot=bot)
        self.content = content
        self.guild = guild
        self.mentions = mentions or []
        self.attachments = attachments or []
        self.nonce = nonce
        self.replies: list[tuple[str, dict]] = []
        self.deleted = False
        self.events: list[str] = []
        self.channel = SimpleNamespace(id=9, name="general", typing=lambda: _Typing(self.events), send=self._send)
        self.sent: list[str] = []

    async def reply(self, text, **kwargs):
        self.replies.append((text, kwargs))
        return SimpleNamespace(id=900)

    async def _send(self, text, **kwargs):
        self.sent.append(text)
        return _FakeMessage(author_id=OWN_ID, mid=901)

    async def delete(self):
        self.deleted = True


class _FakeImage:
    def __init__(self, content_type, size=10, data=b"img"):
        self.content_type = content_type
        self.size = size
        self.filename = "x"
        self._data = data

    async def read(self):
        return self._data


async def _instant_sleep(_seconds):
    return None


class AfkServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, _migrations_dir())
        self.now = [100.0]
        self.generated = []
        self.outbound = OutboundTracker()

        async def generate(payload):
            self.generated.append(payload)
            return "they're out, back soon"

        self.afk = AfkService(
            db_lock=asyncio.Lock(),
            db_conn=self.conn,
            get_json_state_sync=get_json_state_sync,
            set_json_state_sync=set_json_state_sync,
            generate=generate,
            persona=AfkPersona(),
            outbound=self.outbound,
            prefix=".",
            clock=lambda: self.now[0],
            sleep=_instant_sleep,
            delay_range=(0.0, 0.0),
        )

    def tearDown(self):
        self.conn.close()

    async def test_toggle_persists_and_defaults_reason(self):
        state = await self.afk.toggle("")
        self.assertTrue(state.active)
        self.assertEqual(state.reason, "Busy")
        self.assertEqual(get_json_state_sync(self.conn, AFK_STATE_KEY), {"active": True, "reason": "Busy"})

        state = await self.afk.toggle()
        self.assertFalse(state.active)

    async def test_load_restores_saved_state(self):
        set_json_state_sync(self.conn, AFK_STATE_KEY, {"active": True, "reason": "sleeping"})
        state = await self.afk.load()
        self.assertTrue(state.active)
        self.assertEqual(state.reason, "sleeping")

    async def test_auto_off_respects_grace_commands_and_automation(self):
        await self.afk.toggle("lunch")
        own = _FakeMessage(author_id=OWN_ID, content="hey", guild=SimpleNamespace(id=5, name="G"))

        self.now[0] += 2.0
        self.assertFalse(self.afk.should_auto_off(own, own_id=OWN_ID))
        self.now[0] += 2.0
        self.assertTrue(self.afk.should_auto_off(own, own_id=OWN_ID))
        self.assertFalse(self.afk.should_auto_off(_FakeMessage(author_id=OWN_ID, content=".afk"), own_id=OWN_ID))
        self.assertFalse(self.afk.should_auto_off(_FakeMessage(author_id=2, content="hi"), own_id=OWN_ID))
        echo = _FakeMessage(author_id=OWN_ID, content="bot text", nonce=self.outbound.new_nonce())
        self.assertFalse(self.afk.should_auto_off(echo, own_id=OWN_ID))

        self.assertTrue(await self.afk.maybe_auto_off(own, own_id=OWN_ID))
        self.assertFalse(self.afk.state.active)
        self.assertEqual(own.sent, ["👋 **AFK turned off automatically**"])
        self.assertEqual(get_json_state_sync(self.conn, AFK_STATE_KEY)["active"], False)

    async def test_auto_off_in_dm_sends_no_notice(self):
        await self.afk.toggle("x")
        self.now[0] += 10
        dm = _FakeMessage(author_id=OWN_ID, content="back")
        self.assertTrue(await self.afk.maybe_auto_off(dm, own_id=OWN_ID))
        self.assertEqual(dm.sent, [])

    async def test_should_auto_reply_for_dms_and_mentions(self):
        own_user = SimpleNamespace(id=OWN_ID)
        guild = SimpleNamespace(id=5, name="G")
        self.assertFalse(self.afk.should_auto_reply(_FakeMessage(author_id=2), own_user=own_user))

        await self.afk.toggle("away")
        self.assertTrue(self.afk.should_auto_reply(_FakeMessage(author_id=2), own_user=own_user))
        self.assertTrue(
            self.afk.should_auto_reply(_FakeMessage(author_id=2, guild=guild, mentions=[own_user]), own_user=own_user)
        )
        self.assertFalse(self.afk.should_auto_reply(_FakeMessage(author_id=2, guild=guild), own_user=own_user))
        self.assertFalse(self.afk.should_auto_reply(_FakeMessage(author_id=OWN_ID), own_user=own_user))
        self.assertFalse(self.afk.should_auto_reply(_FakeMessage(author_id=3, bot=True), own_user=own_user))

    async def test_collect_images_filters_mime_and_size(self):
        message = _FakeMessage(
            author_id=2,
            attachments=[
                _FakeImage("image/png; charset=binary"),
                _FakeImage("application/pdf"),
                _FakeImage("image/jpeg", size=11 * 1024 * 1024),
                _FakeImage(None),
            ],
        )
        self.assertEqual(await self.afk.collect_images(message), [(b"img", "image/png")])

    async def test_auto_reply_generates_and_replies(self):
        await self.afk.toggle("in a meeting")
        message = _FakeMessage(author_id=2, content="you there?", attachments=[_FakeImage("image/webp")])

        answer = await self.afk.auto_reply(message, owner_name="owner")

        self.assertEqual(answer, "they're out, back soon")
        self.assertEqual(message.events, ["typing"])
        self.assertEqual(message.replies[0][0], answer)
        self.assertIn("nonce", message.replies[0][1])
        content = self.generated[0][0]["content"]
        self.assertIn("in a meeting", content[0]["text"])
        self.assertIn('They wrote: "you there?"', content[0]["text"])
        self.assertEqual(content[1]["type"], "image_url")
        self.assertTrue(self.outbound.is_automation(message_id=900))

    async def test_auto_reply_failure_is_swallowed(self):
        async def broken(_payload):
            raise RuntimeError("all tiers exhausted")

        self.afk.generate = broken
        await self.afk.toggle("x")
        message = _FakeMessage(author_id=2, content="hi")
        self.assertIsNone(await self.afk.auto_reply(message, owner_name="owner"))
        self.assertEqual(message.replies, [])


class PresenceServiceTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, _migrations_dir())
        self.applied: list[str] = []

        async def apply_presence(status):
            self.applied.append(status)

        self.presence = PresenceService(
            db_lock=asyncio.Lock(),
            db_conn=self.conn,
            get_json_state_sync=get_json_state_sync,
            set_json_state_sync=set_json_state_sync,
            apply_presence=apply_presence,
        )

    def tearDown(self):
        self.conn.close()

    def test_normalize_status_aliases(self):
        self.assertEqual(normalize_status("ON"), "online")
        self.assertEqual(normalize_status("off"), "invisible")
        self.assertEqual(normalize_status("busy"), "dnd")
        self.assertEqual(normalize_status(" idle "), "idle")
        self.assertIsNone(normalize_status("away"))
        self.assertIsNone(normalize_status(None))

    async def test_set_status_persists_and_applies(self):
        ok, text = await self.presence.set_status("busy")
        self.assertTrue(ok)
        self.assertIn("Do Not Disturb", text)
        self.assertEqual(self.applied, ["dnd"])
        self.assertEqual(get_json_state_sync(self.conn, USER_STATUS_KEY), {"status": "dnd"})

    async def test_invalid_status_returns_usage(self):
        ok, text = await self.presence.set_status("sleepy")
        self.assertFalse(ok)
        self.assertTrue(text.startswith("❌ Invalid status!"))
        self.assertEqual(self.applied, [])

    async def test_clear_and_load(self):
        await self.presence.set_status("idle")
        ok, text = await self.presence.clear_status()
        self.assertTrue(ok)
        self.assertEqual(text, "🟢 **Status reset to Online**")

        set_json_state_sync(self.conn, USER_STATUS_KEY, {"status": "invisible"})
        self.assertEqual(await self.presence.load(), "invisible")

        set_json_state_sync(self.conn, USER_STATUS_KEY, {"status": "bogus"})
        self.assertEqual(await self.presence.load(), "online")

    async def test_apply_failure_returns_false(self):
        async def broken(_status):
            raise RuntimeError("gateway closed")

        self.presence.apply_presence = broken
        self.assertFalse(await self.presence.apply())


if __name__ == "__main__":
    unittest.main()
