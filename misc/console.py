from __future__ import annotations

import asyncio
import sys
from typing import Any, Callable

from config.defaults import DEFAULT_TRANSLATE_LANG
from config.defaults import LOGS_MAX_CONSOLE
from config.defaults import PURGE_DEFAULT_AMOUNT
from config.defaults import STATUS_EMOJI
from config.defaults import STATUS_LABEL
from ops.service import parse_count

CONSOLE_HELP = """
┌─────────────────────────────────────────────────
│ 📟 CONSOLE COMMANDS (no prefix needed)
├─────────────────────────────────────────────────
│ ss <on|idle|dnd|off>      Keep a status 24/7
│ cs                        Reset status -> online
│ afk [reason]              Toggle AFK
│ ping                      Show API ping
│ stats                     CPU/RAM/disk
│ ask <question>            Ask the AI
│ tr <lang> <text>          Translate text
│ logs [n|clear]            Show/clear deleted-message log
│ snipe <channelId>         Show snipe
│ esnipe <channelId>        Show edit snipe
│ purge <channelId> [n]     Delete your own messages
│ cleandl                   Delete unreferenced downloads
└─────────────────────────────────────────────────""".strip("\n")

LEADING_PREFIXES = ".!,/"


class ConsoleCommands:
    """Terminal counterpart of the chat commands. `handle()` returns the text to print."""

    def __init__(self, *, bot: Any, operator, afk, presence) -> None:
        self.bot = bot
        self.operator = operator
        self.afk = afk
        self.presence = presence

    async def handle(self, line: str) -> str | None:
        stripped = (line or "").strip()
        if stripped[:1] and stripped[0] in LEADING_PREFIXES:
            stripped = stripped[1:]
        parts = stripped.split()
        if not parts:
            return None
        command, args = parts[0].lower(), parts[1:]

        if command in {"ss", "setstatus"}:
            ok, _text = await self.presence.set_status(args[0] if args else "")
            if not ok:
                return "❌ Usage: ss <online|idle|dnd|invisible|on|off|busy>"
            status = self.presence.status
            return f"{STATUS_EMOJI[status]} [Status] Set -> {STATUS_LABEL[status]}"

        if command in {"cs", "clearstatus"}:
            await self.presence.clear_status()
            return "🟢 [Status] Reset -> Online"

        if command == "afk":
            state = await self.afk.toggle(" ".join(args))
            return f"💤 [AFK] ON: {state.reason}" if state.active else "👋 [AFK] OFF"

        if command == "ping":
            return f"🏓 API Ping: {int(self.bot.latency * 1000)}ms"

        if command == "stats":
            return await self.operator.stats_text(latency_seconds=self.bot.latency, console=True)

        if command in {"ask", "ai"}:
            question = " ".join(args)
            if not question:
                return "❌ Usage: ask <question>"
            _ok, text = await self.operator.ask(question, user_key="console", limit=100_000)
            return text

        if command in {"tr", "translate"}:
            lang = args[0] if args else ""
            text = " ".join(args[1:])
            if not text:
                return "❌ Usage: tr <lang> <text>"
            ok, translated = await self.operator.translate(lang, text, user_key="console")
            if not ok:
                return translated
            return f"🌐 [{(lang or DEFAULT_TRANSLATE_LANG).upper()}] {translated}"

        if command == "logs":
            return await self.operator.logs_text(args[0] if args else "", max_limit=LOGS_MAX_CONSOLE, console=True)

        if command in {"snipe", "esnipe"}:
            if not args:
                return f"❌ Usage: {command} <channelId>"
            if command == "snipe":
                text = self.operator.snipe_text(args[0], console=True)
            else:
                text = self.operator.esnipe_text(args[0], console=True)
            return text or f"❌ Nothing to {command} in that channel!"

        if command == "purge":
            if not args or not args[0].isdigit():
                return "❌ Usage: purge <channelId> [n]"
            channel = self.bot.get_channel(int(args[0]))
            if channel is None:
                return "❌ Channel not found!"
            amount = parse_count(args[1] if len(args) > 1 else "", PURGE_DEFAULT_AMOUNT)
            deleted = await self.operator.purge_own(channel, own_id=self.bot.user.id, amount=amount)
            return f"🗑️ Deleted {deleted} message(s) in #{getattr(channel, 'name', channel.id)}"

        if command == "cleandl":
            return await self.operator.clean_downloads()

        if command == "help":
            return CONSOLE_HELP

        return '❓ Unknown command. Type "help" for the list.'


async def console_loop(
    console: ConsoleCommands,
    *,
    is_ready: Callable[[], bool],
    readline: Callable[[], str] = sys.stdin.readline,
) -> None:
    while True:
        line = await asyncio.to_thread(readline)
        if line == "":
            print("[Console] stdin closed; console input stopped")
            return
        if not line.strip():
            continue
        if not is_ready():
            print("[Console] Not ready yet...")
            continue
        try:
            out = await console.handle(line)
        except Exception as e:
            print(f"[Console] error: {e}")
            continue
        if out:
            print(out)
