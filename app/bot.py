"""
The bot core: one `AsyncApp` with every listener registered.

All three transports (socket mode, HTTP, supervised socket worker) build
their app through `create_bot` so behaviour is identical everywhere.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Tuple

from slack_bolt.async_app import AsyncApp

from app.context import BotContext, Unavailable, build_context
from app.handlers import audit, convo, describe, draft, messages, reminder, task

_LOGGER = logging.getLogger(__name__)


def log_loop_exceptions(loop: asyncio.AbstractEventLoop) -> None:
    """Log exceptions from tasks nobody awaited instead of losing them."""

    def _handler(loop, context):
        exc = context.get("exception")
        _LOGGER.error("Unhandled error in event loop: %s", context.get("message"), exc_info=exc)

    loop.set_exception_handler(_handler)


async def close_bot(ctx: BotContext) -> None:
    await ctx.reminders.shutdown()
    if not isinstance(ctx.database, Unavailable):
        await ctx.database.dispose()


def create_bot(
    settings, process_before_response: bool = False, reminder_store=None
) -> Tuple[AsyncApp, BotContext]:
    """Build the app and its context; raises if Slack credentials are unusable."""
    if not settings.SLACK_BOT_TOKEN:
        raise RuntimeError("SLACK_BOT_TOKEN is required")

    app = AsyncApp(
        token=settings.SLACK_BOT_TOKEN,
        signing_secret=settings.SLACK_SIGNING_SECRET,
        process_before_response=process_before_response,
    )
    ctx = build_context(settings, app.client, reminder_store)
    register(app, ctx)
    _LOGGER.info(
        "Bot ready (AI: %s, database: %s, reminders: %s)",
        "on" if ctx.ai.client else "fallback only",
        "unavailable" if isinstance(ctx.database, Unavailable) else "on",
        ctx.reminders.delivery,
    )
    return app, ctx


def register(app: AsyncApp, ctx: BotContext) -> None:
    # ── slash commands ────────────────────────────────────────────────────

    @app.command("/audit")
    async def on_audit(ack, command, respond, say):
        await ack()
        await audit.handle_audit(ctx, command, respond, say)

    @app.command("/draft")
    async def on_draft(ack, command, client, respond, say):
        await ack()
        await draft.handle_draft(ctx, command, client, respond, say)

    @app.command("/reminder")
    async def on_reminder(ack, command, client, respond, say):
        await ack()
        await reminder.handle_reminder(ctx, command, client, respond, say)

    @app.command("/task")
    async def on_task(ack, command, respond):
        await ack()
        await task.handle_task(ctx, command, respond)

    @app.command("/convo")
    async def on_convo(ack, command, client, respond):
        await ack()
        await convo.handle_convo(ctx, command, client, respond)

    @app.command("/describe")
    async def on_describe(ack, command, respond):
        await ack()
        await describe.handle_describe(ctx, command, respond)

    # ── buttons ───────────────────────────────────────────────────────────

    @app.action(describe.TRY_ACTION)
    async def on_try(ack, body, respond):
        await ack()
        await describe.handle_try(ctx, body, respond)

    @app.action(describe.HELP_ACTION)
    async def on_help(ack, body, respond):
        await ack()
        await describe.handle_help(ctx, body, respond)

    @app.action(reminder.DELETE_ACTION)
    async def on_delete_reminder(ack, body, respond):
        await ack()
        await describe.handle_delete_button(ctx, body, respond)

    # ── events ────────────────────────────────────────────────────────────

    @app.event("message")
    async def on_message(event, client, say):
        await messages.handle_direct_message(ctx, event, client, say)

    @app.event("app_mention")
    async def on_mention(event, client, say):
        await messages.handle_mention(ctx, event, client, say)
