from __future__ import annotations

from discord.ext import commands

from config.defaults import DEFAULT_TRANSLATE_LANG
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.command_deps import delete_quietly
from misc.commands.command_deps import edit_or_send


async def _referenced_text(ctx: commands.Context) -> str | None:
    ref = getattr(ctx.message, "reference", None)
    if ref is None or ref.message_id is None:
        return None
    resolved = getattr(ref, "resolved", None)
    if resolved is not None and hasattr(resolved, "content"):
        return resolved.content or ""
    try:
        target = await ctx.channel.fetch_message(ref.message_id)
    except Exception as e:
        print(f"[Commands] could not fetch replied message: {e}")
        return None
    return target.content or ""


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    operator = deps.operator

    @bot.command(name="ask", aliases=["ai"])
    async def cmd_ask(ctx: commands.Context, *, question: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        question = question.strip()
        if question:
            await edit_or_send(ctx, f'🤔 **Thinking:** "{question}"...', deps=deps)
        ok, text = await operator.ask(question, user_key=ctx.author.id)
        await edit_or_send(ctx, text, deps=deps)

    @bot.command(name="tr", aliases=["translate"])
    async def cmd_translate(ctx: commands.Context, lang: str = "", *, text: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        replied = await _referenced_text(ctx)
        source = replied if replied is not None else text
        if source.strip():
            await edit_or_send(ctx, "🔄 Translating...", deps=deps)
        ok, translated = await operator.translate(lang, source, user_key=ctx.author.id)
        if not ok:
            await edit_or_send(ctx, translated, deps=deps)
            return

        label = (lang or DEFAULT_TRANSLATE_LANG).upper()
        quote = ""
        if replied is not None:
            quote = f"\n> {replied[:80]}{'...' if len(replied) > 80 else ''}"
        await edit_or_send(ctx, f"🌐 **[{label}]**{quote}\n{translated}", deps=deps)

    @bot.command(name="afk")
    async def cmd_afk(ctx: commands.Context, *, reason: str = ""):
        if not gates.user_is_owner(ctx.author):
            return
        state = await deps.afk.toggle(reason)
        notice = f"💤 **AFK ON**: {state.reason}" if state.active else "👋 **AFK OFF**"
        await deps.afk.flash_notice(ctx.channel, notice)
        await delete_quietly(ctx.message, outbound=deps.outbound)
