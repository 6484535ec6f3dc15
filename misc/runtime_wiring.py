from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_ai import register as register_ai
from misc.commands.commands_snipe import register as register_snipe
from misc.commands.commands_status import register as register_status
from misc.commands.commands_utility import register as register_utility
from misc.console import ConsoleCommands
from misc.console import console_loop
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps
from misc.events_runtime import register_runtime_events


def wire_bot_runtime(
    bot,
    *,
    prefix: str,
    user_is_owner,
    db_lock,
    db_conn,
    send_chunked,
    outbound,
    cache,
    ranker,
    tiers,
    media,
    afk,
    presence,
    operator,
    fetch_guild_activity_sync,
    fetch_snipes_sync,
    sweep_loop_func,
    presence_loop_func,
    console_enabled: bool,
) -> None:
    command_deps = CommandDeps(
        prefix=prefix,
        send_chunked=send_chunked,
        outbound=outbound,
        cache=cache,
        ranker=ranker,
        tiers=tiers,
        media=media,
        afk=afk,
        presence=presence,
        operator=operator,
    )
    command_gates = CommandGates(
        user_is_owner=user_is_owner,
    )

    register_snipe(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_ai(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_status(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_utility(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    console = ConsoleCommands(bot=bot, operator=operator, afk=afk, presence=presence)

    async def run_console():
        return await console_loop(console, is_ready=bot.is_ready)

    register_runtime_events(
        bot,
        deps=RuntimeDeps(
            db_lock=db_lock,
            db_conn=db_conn,
            prefix=prefix,
            user_is_owner=user_is_owner,
            outbound=outbound,
            cache=cache,
            ranker=ranker,
            tiers=tiers,
            media=media,
            afk=afk,
            presence=presence,
        ),
        boot=RuntimeBootDeps(
            fetch_guild_activity_sync=fetch_guild_activity_sync,
            fetch_snipes_sync=fetch_snipes_sync,
            sweep_loop_func=sweep_loop_func,
            presence_loop_func=presence_loop_func,
            console_enabled=console_enabled,
            console_loop_func=run_console,
        ),
    )
