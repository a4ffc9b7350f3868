"""Direct messages and @-mentions."""

from __future__ import annotations

import logging

from app.context import BotContext
from app.handlers.replies import post_placeholder, report_error, update_or_say
from app.services.intents import canned_reply
from app.utils.text import strip_mentions

_LOGGER = logging.getLogger(__name__)

TROUBLE = "I'm having trouble processing your message right now. Please try again later."


def is_from_bot(event: dict) -> bool:
    return bool(event.get("bot_id")) or event.get("subtype") == "bot_message"


async def handle_direct_message(ctx: BotContext, event: dict, client, say) -> None:
    if event.get("channel_type") != "im" or is_from_bot(event) or event.get("subtype"):
        return
    await _reply(ctx, event, client, say, direct=True)


async def handle_mention(ctx: BotContext, event: dict, client, say) -> None:
    if is_from_bot(event):
        return
    await _reply(ctx, event, client, say, direct=False, thread_ts=event.get("thread_ts") or event.get("ts"))


async def _reply(ctx: BotContext, event: dict, client, say, direct: bool, thread_ts=None) -> None:
    key = event.get("ts")
    if not ctx.in_flight.claim(key):
        _LOGGER.info("Message %s already being handled, skipping", key)
        return

    user_id = event.get("user")
    text = strip_mentions(event.get("text"))
    try:
        canned = canned_reply(text, user_id, direct=direct, rng=ctx.rng)
        if canned is not None:
            await update_or_say(client, say, None, text=canned, thread_ts=thread_ts)
        else:
            placeholder = await post_placeholder(say, thread_ts=thread_ts)
            answer = await ctx.ai.respond(text, "direct" if direct else "mention")
            await update_or_say(client, say, placeholder, text=answer, thread_ts=thread_ts)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Error handling %s: %s", "direct message" if direct else "mention", exc)
        ctx.in_flight.release(key, delay=0)
        await report_error(say, TROUBLE, thread_ts=thread_ts)
        return
    ctx.in_flight.release(key)
