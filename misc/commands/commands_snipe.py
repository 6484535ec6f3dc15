from __future__ import annotations

import discord
from discord.ext import commands

from config.defaults import DISCORD_MAX_MESSAGE_LEN
from config.defaults import LOGS_MAX_CHAT
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_deps import delete_quietly
from misc.commands.command_deps import edit_or_send


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    operator = deps.operator

    @bot.command(name="snipe")
    async def cmd_snipe(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        text = operator.snipe_text(ctx.channel.id)
        if text is None:
            await edit_or_send(ctx, "❌ Nothing to snipe!", deps=deps)
            return

        await delete_quietly(ctx.message, outbound=deps.outbound)
        path = operator.snipe_file(ctx.channel.id)
        try:
            if path is not None:
                await deps.outbound.send(ctx.channel, text[:DISCORD_MAX_MESSAGE_LEN], file=discord.File(str(path)))
            else:
                await deps.send_chunked(ctx.channel, text)
        except Exception as e:
            print(f"[Commands] snipe send failed: {e}")

    @bot.command(name="esnipe")
    async def cmd_esnipe(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        text = operator.esnipe_text(ctx.channel.id)
        if text is None:
            await edit_or_send(ctx, "❌ Nothing to esnipe!", deps=deps)
            return

        await delete_quietly(ctx.message, outbound=deps.outbound)
        try:
            await deps.send_chunked(ctx.channel, text)
        except Exception as e:
            print(f"[Commands] esnipe send failed: {e}")

    @bot.command(name="logs")
    async def cmd_logs(ctx: commands.Context, arg: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        text = await operator.logs_text(arg, max_limit=LOGS_MAX_CHAT)
        await edit_or_send(ctx, text, deps=deps)

    @bot.command(name="cleandl")
    async def cmd_cleandl(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        text = await operator.clean_downloads()
        await edit_or_send(ctx, text, deps=deps)
