from __future__ import annotations

from discord.ext import commands

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_deps import edit_or_send


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    presence = deps.presence

    @bot.command(name="ss", aliases=["setstatus"])
    async def cmd_setstatus(ctx: commands.Context, status: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        _ok, text = await presence.set_status(status)
        await edit_or_send(ctx, text, deps=deps)

    @bot.command(name="cs", aliases=["clearstatus"])
    async def cmd_clearstatus(ctx: commands.Context):
        if not gates.user_is_owner(ctx.author):
            return
        _ok, text = await presence.clear_status()
        await edit_or_send(ctx, text, deps=deps)
