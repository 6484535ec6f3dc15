from __future__ import annotations

import asyncio
import time

from discord.ext import commands

from config.defaults import GHOST_DELETE_DELAY_SECONDS
from config.defaults import PURGE_DEFAULT_AMOUNT
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_deps import delete_quietly
from misc.commands.command_deps import edit_or_send
from ops.service import parse_count
from snipe.models import author_tag


def help_text(prefix: str) -> str:
    p = prefix
    rows = [
        ("snipe", "Show the last deleted message/file here"),
        ("esnipe", "Show the last message before an edit"),
        ("afk [reason]", "Toggle AI auto-reply"),
        ("ss [status]", "Keep a status 24/7 (on/idle/dnd/off)"),
        ("cs", "Reset status to online"),
        ("ghost @user", "Mention then delete (ghost ping)"),
        ("ask [question]", "Ask the AI directly"),
        ("tr [lang]", "Translate (reply, or tr en [text])"),
        ("logs [n]", "Show the n most recent deleted messages"),
        ("logs clear", "Clear the deleted-message log"),
        ("avatar @user", "Get an avatar"),
        ("user @user", "Show account info"),
        ("ping", "Show latency"),
        ("stats", "CPU/RAM/disk/uptime"),
        ("purge [n]", "Delete your last n messages here"),
        ("cleandl", "Delete unreferenced files in downloads"),
    ]
    width = max(len(p + name) for name, _ in rows)
    lines = [f"{(p + name).ljust(width)} :: {desc}" for name, desc in rows]
    return "```asciidoc\n=== 📜 COMMANDS ===\n" + "\n".join(lines) + "\n```"


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    operator = deps.operator

    def _target_user(ctx: commands.Context):
        mentions = list(getattr(ctx.message, "mentions", None) or [])
        return mentions[0] if mentions else bot.user

    @bot.command(name="help")
    async def cmd_help(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        await edit_or_send(ctx, help_text(deps.prefix), deps=deps)

    @bot.command(name="purge")
    async def cmd_purge(ctx: commands.Context, amount: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        count = parse_count(amount, PURGE_DEFAULT_AMOUNT)
        await delete_quietly(ctx.message, outbound=deps.outbound)
        deleted = await operator.purge_own(ctx.channel, own_id=bot.user.id, amount=count, skip_id=ctx.message.id)
        print(f"[Purge] Deleted {deleted} message(s) in #{getattr(ctx.channel, 'name', ctx.channel.id)}")

    @bot.command(name="stats")
    async def cmd_stats(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        await edit_or_send(ctx, "🔄 Reading hardware...", deps=deps)
        try:
            text = await operator.stats_text(latency_seconds=bot.latency)
        except Exception as e:
            print(f"[Stats] failed: {e}")
            text = f"❌ Could not read hardware stats: {e}"
        await edit_or_send(ctx, text, deps=deps)

    @bot.command(name="ping")
    async def cmd_ping(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        started = time.perf_counter()
        await edit_or_send(ctx, "🏓 Pinging...", deps=deps)
        roundtrip = int((time.perf_counter() - started) * 1000)
        await edit_or_send(
            ctx,
            f"🏓 **Pong!**\nLatency: {roundtrip}ms | API: {int(bot.latency * 1000)}ms",
            deps=deps,
        )

    @bot.command(name="avatar", aliases=["av"])
    async def cmd_avatar(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        user = _target_user(ctx)
        url = user.display_avatar.with_size(4096).url
        await edit_or_send(ctx, f"🖼️ **Avatar of {author_tag(user)}:**\n{url}", deps=deps)

    @bot.command(name="user")
    async def cmd_user(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        user = _target_user(ctx)
        created = user.created_at.strftime("%d/%m/%Y")
        await edit_or_send(
            ctx,
            f"👤 **User:** {author_tag(user)}\n🆔 **ID:** {user.id}\n📅 **Created:** {created}",
            deps=deps,
        )

    @bot.command(name="ghost")
    async def cmd_ghost(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        if not getattr(ctx.message, "mentions", None):
            return
        await asyncio.sleep(GHOST_DELETE_DELAY_SECONDS)
        await delete_quietly(ctx.message, outbound=deps.outbound)
