from __future__ import annotations

import asyncio
import unittest
from types import SimpleNamespace

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.events_runtime import register_runtime_events
    from misc.runtime_deps import RuntimeBootDeps
    from misc.runtime_deps import RuntimeDeps

from misc.origin import OutboundTracker


OWN_ID = 1


class RecordingCache:
    def __init__(self):
        self.events = []
        self.rehydrated = None

    async def observe(self, message):
        self.events.append(("observe", message.id))

    async def resolve_delete(self, message_id, channel_id, fallback=None, *, guild_id=None):
        self.events.append(("delete", message_id, channel_id, fallback, guild_id))

    def resolve_edit(self, message_id, channel_id, old, new, fallback=None):
        self.events.append(("edit", message_id, channel_id, old, new))

    def rehydrate(self, rows):
        self.rehydrated = list(rows)
        return len(self.rehydrated)


class RecordingRanker:
    def __init__(self, events):
        self.events = events
        self.loaded = None
        self.bootstrapped = 0

    async def track(self, message):
        self.events.append(("track", message.id))

    def load_rows(self, rows):
        self.loaded = list(rows)
        return len(self.loaded)

    async def bootstrap(self, guilds):
        self.bootstrapped += 1
        return False


class RecordingAfk:
    def __init__(self, events, *, reply=False):
        self.events = events
        self.reply = reply
        self.loaded = False

    async def load(self):
        self.loaded = True

    async def maybe_auto_off(self, message, *, own_id):
        self.events.append(("auto_off", message.id))
        return False

    def should_auto_reply(self, message, *, own_user):
        return self.reply

    async def auto_reply(self, message, *, owner_name):
        self.events.append(("auto_reply", message.id, owner_name))


class RecordingPresence:
    def __init__(self):
        self.status = "idle"
        self.applied = 0
        self.loaded = False

    async def load(self):
        self.loaded = True
        return self.status

    async def apply(self):
        self.applied += 1
        return True


def _message(mid, *, content="hi", author_id=2, nonce=None):
    return SimpleNamespace(id=mid, content=content, author=SimpleNamespace(id=author_id), nonce=nonce)


@unittest.skipIf(commands is None, "discord.py not installed")
class RuntimeEventsTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, *, reply=False, console_enabled=False):
        self.cache = RecordingCache()
        self.ranker = RecordingRanker(self.cache.events)
        self.afk = RecordingAfk(self.cache.events, reply=reply)
        self.presence = RecordingPresence()
        self.outbound = OutboundTracker()
        self.processed = []
        self.loops_started = []

        bot = commands.Bot(command_prefix=".", intents=discord.Intents.none(), help_command=None)

        async def process_commands(message):
            self.processed.append(message.id)

        bot.process_commands = process_commands

        async def sweep_loop():
            self.loops_started.append("sweep")

        async def presence_loop():
            self.loops_started.append("presence")

        async def console_loop():
            self.loops_started.append("console")

        register_runtime_events(
            bot,
            deps=RuntimeDeps(
                db_lock=asyncio.Lock(),
                db_conn=None,
                prefix=".",
                user_is_owner=lambda user: int(user.id) == OWN_ID,
                outbound=self.outbound,
                cache=self.cache,
                ranker=self.ranker,
                tiers=None,
                media=None,
                afk=self.afk,
                presence=self.presence,
            ),
            boot=RuntimeBootDeps(
                fetch_guild_activity_sync=lambda conn: [{"guild_id": "1"}],
                fetch_snipes_sync=lambda conn: [{"channel_id": "10"}, {"channel_id": "11"}],
                sweep_loop_func=sweep_loop,
                presence_loop_func=presence_loop,
                console_enabled=console_enabled,
                console_loop_func=console_loop,
            ),
        )
        return bot

    def _login_as(self, bot, user_id=OWN_ID):
        bot._connection.user = SimpleNamespace(id=user_id, name="me")

    async def test_on_message_caches_then_tracks_then_dispatches_owner_commands(self):
        bot = self._bot()
        await bot.on_message(_message(1, content=".snipe", author_id=OWN_ID))
        await bot.on_message(_message(2, content=".snipe", author_id=2))
        await bot.on_message(_message(3, content="plain chat", author_id=OWN_ID))

        self.assertEqual(self.cache.events[:2], [("observe", 1), ("track", 1)])
        self.assertEqual(self.processed, [1])
        self.assertTrue(self.outbound.is_automation(message_id=1))
        self.assertFalse(self.outbound.is_automation(message_id=2))
        self.assertFalse(self.outbound.is_automation(message_id=3))

    async def test_automation_echo_is_not_dispatched(self):
        bot = self._bot()
        nonce = self.outbound.new_nonce()
        await bot.on_message(_message(4, content=".help", author_id=OWN_ID, nonce=nonce))
        self.assertEqual(self.processed, [])

    async def test_afk_hooks_run_when_logged_in(self):
        bot = self._bot(reply=True)
        self._login_as(bot)
        await bot.on_message(_message(5, content="hello?", author_id=2))
        self.assertIn(("auto_off", 5), self.cache.events)
        self.assertIn(("auto_reply", 5, "me"), self.cache.events)

    async def test_raw_delete_and_edit_forward_to_cache(self):
        bot = self._bot()
        cached = SimpleNamespace(content="old text")
        await bot.on_raw_message_delete(SimpleNamespace(message_id=7, channel_id=10, cached_message=None, guild_id=100))
        await bot.on_raw_message_edit(SimpleNamespace(message_id=8, channel_id=10, cached_message=cached, data={"content": "new text"}))
        await bot.on_raw_message_edit(SimpleNamespace(message_id=9, channel_id=10, cached_message=None, data={"embeds": []}))

        self.assertEqual(
            self.cache.events,
            [("delete", 7, 10, None, 100), ("edit", 8, 10, "old text", "new text")],
        )

    async def test_on_ready_boots_once_then_only_reapplies_presence(self):
        bot = self._bot(console_enabled=True)
        await bot.on_ready()
        await asyncio.sleep(0)

        self.assertEqual(self.ranker.loaded, [{"guild_id": "1"}])
        self.assertEqual(len(self.cache.rehydrated), 2)
        self.assertTrue(self.afk.loaded)
        self.assertTrue(self.presence.loaded)
        self.assertEqual(self.presence.applied, 1)
        self.assertEqual(self.ranker.bootstrapped, 1)
        self.assertEqual(sorted(self.loops_started), ["console", "presence", "sweep"])

        await bot.on_ready()
        await asyncio.sleep(0)
        self.assertEqual(self.presence.applied, 2)
        self.assertEqual(self.ranker.bootstrapped, 1)
        self.assertEqual(len(self.loops_started), 3)

    async def test_console_not_started_when_disabled(self):
        bot = self._bot(console_enabled=False)
        await bot.on_ready()
        await asyncio.sleep(0)
        self.assertNotIn("console", self.loops_started)

    async def test_command_not_found_is_ignored(self):
        bot = self._bot()
        await bot.on_command_error(SimpleNamespace(command=None), commands.CommandNotFound('Command "x" is not found'))


if __name__ == "__main__":
    unittest.main()
