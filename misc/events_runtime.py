from __future__ import annotations

import asyncio
import traceback

import discord
from discord.ext import commands
from misc.runtime_deps import RuntimeBootDeps
from misc.runtime_deps import RuntimeDeps


def _loop_exception_handler(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    exc = context.get("exception")
    message = context.get("message") or "unhandled error"
    if exc is not None:
        print(f"[Error] {message}: {exc!r}")
        traceback.print_exception(type(exc), exc, exc.__traceback__)
    else:
        print(f"[Error] {message}")


def install_loop_exception_handler(loop: asyncio.AbstractEventLoop) -> None:
    loop.set_exception_handler(_loop_exception_handler)


async def _rehydrate_state(deps: RuntimeDeps, boot: RuntimeBootDeps) -> None:
    try:
        async with deps.db_lock:
            activity_rows = await asyncio.to_thread(boot.fetch_guild_activity_sync, deps.db_conn)
            snipe_rows = await asyncio.to_thread(boot.fetch_snipes_sync, deps.db_conn)
    except Exception as e:
        print(f"[DB] Could not load saved state: {e}")
        activity_rows, snipe_rows = [], []

    deps.ranker.load_rows(activity_rows)
    restored = deps.cache.rehydrate(snipe_rows)
    print(f"[DB] Loaded {len(activity_rows)} guild activity rows, {restored} snipe snapshots")

    await deps.afk.load()
    await deps.presence.load()


def register_runtime_events(
    bot: commands.Bot,
    *,
    deps: RuntimeDeps,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        print(f"Lurk is online as {bot.user}")
        if getattr(bot, "_lurk_booted", False):
            # reconnect: the gateway forgets presence
            await deps.presence.apply()
            return
        bot._lurk_booted = True

        install_loop_exception_handler(asyncio.get_running_loop())
        await _rehydrate_state(deps, boot)
        await deps.presence.apply()
        print(f"[Status] Applied saved status: {deps.presence.status}")

        await deps.ranker.bootstrap(bot.guilds)

        if not getattr(bot, "_sweep_task", None):
            bot._sweep_task = asyncio.create_task(boot.sweep_loop_func())
            print("[Sweep] download sweep loop started")

        if not getattr(bot, "_presence_task", None):
            bot._presence_task = asyncio.create_task(boot.presence_loop_func())
            print("[Status] presence reassert loop started")

        if boot.console_enabled and boot.console_loop_func is not None and not getattr(bot, "_console_task", None):
            bot._console_task = asyncio.create_task(boot.console_loop_func())
            print('[Console] ready; type "help" for commands')

    @bot.event
    async def on_message(message: discord.Message):
        # Attachment download happens before anything else can suspend.
        await deps.cache.observe(message)
        await deps.ranker.track(message)

        own = bot.user
        if own is not None:
            await deps.afk.maybe_auto_off(message, own_id=own.id)
            if deps.afk.should_auto_reply(message, own_user=own):
                await deps.afk.auto_reply(message, owner_name=own.name)

        if not (message.content or "").startswith(deps.prefix):
            return
        if deps.outbound.is_automation(message):
            return
        if not deps.user_is_owner(message.author):
            return
        # Command messages are control traffic; never snipe them.
        deps.outbound.mark_message(message.id)
        await bot.process_commands(message)

    @bot.event
    async def on_raw_message_delete(payload: discord.RawMessageDeleteEvent):
        await deps.cache.resolve_delete(
            payload.message_id,
            payload.channel_id,
            payload.cached_message,
            guild_id=payload.guild_id,
        )

    @bot.event
    async def on_raw_message_edit(payload: discord.RawMessageUpdateEvent):
        data = getattr(payload, "data", None) or {}
        if "content" not in data:
            return
        before = payload.cached_message
        deps.cache.resolve_edit(
            payload.message_id,
            payload.channel_id,
            before.content if before is not None else None,
            data.get("content"),
            before,
        )

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        print(f"[Commands] {getattr(ctx.command, 'name', '?')} failed: {error}")

    @bot.event
    async def on_error(event_method: str, *args, **kwargs):
        print(f"[Error] Unhandled exception in {event_method}:")
        traceback.print_exc()
