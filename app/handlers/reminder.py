"""/reminder: create, list and delete reminders."""

from __future__ import annotations

import logging
from typing import List

from slack_sdk.errors import SlackApiError

from app.context import BotContext
from app.handlers.replies import post_placeholder, report_error, update_or_say
from app.services import parser_agent
from app.services.reminders import ReminderError
from app.types.parser_contract import ReminderRecord
from app.utils import blocks

_LOGGER = logging.getLogger(__name__)

USAGE = (
    "Please provide reminder details. Examples:\n"
    "• `/reminder Submit report tomorrow at 3pm`\n"
    "• `/reminder list`\n"
    "• `/reminder delete rem_1234abcd`"
)

DELETE_ACTION = "delete_reminder"


def delete_button(reminder_id: str) -> dict:
    return blocks.button("Delete", DELETE_ACTION, value=reminder_id, style="danger")


def confirmation_blocks(record: ReminderRecord, display_time: str, tips: str) -> List[blocks.Block]:
    return [
        blocks.section(f"✅ *Reminder set!*\n\n*Task:* {record.content}\n*When:* {display_time}"),
        blocks.context(f"Reminder ID: `{record.reminder_id}`"),
        blocks.divider(),
        blocks.section("*⏱️ Time management tips:*"),
        *blocks.sections(tips),
        blocks.actions(delete_button(record.reminder_id)),
    ]


async def handle_reminder(ctx: BotContext, command: dict, client, respond, say) -> None:
    text = (command.get("text") or "").strip()
    user_id = command.get("user_id")
    if not text:
        await respond(response_type="ephemeral", text=USAGE)
        return

    keyword, _, rest = text.partition(" ")
    if keyword.lower() == "list":
        await list_reminders(ctx, user_id, respond)
    elif keyword.lower() == "delete":
        await delete_reminder(ctx, rest.strip(), respond)
    else:
        await create_reminder(ctx, text, user_id, command.get("channel_id"), client, say)


async def create_reminder(ctx: BotContext, text: str, user_id: str, channel_id: str, client, say) -> None:
    placeholder = await post_placeholder(say, f"⏰ Setting up a reminder for <@{user_id}>... _Thinking..._")
    try:
        parsed = await parser_agent.run(text, ctx.ai, ctx.now())

        if parsed.time is None:
            suggestions = await parser_agent.timeframe_suggestions(text, ctx.ai)
            await update_or_say(
                client,
                say,
                placeholder,
                text="I couldn't work out when to remind you.",
                blocks=[
                    blocks.section(
                        "🤔 I couldn't work out when to remind you. "
                        "Try something like `/reminder Submit report tomorrow at 3pm`."
                    ),
                    blocks.divider(),
                    *blocks.sections(suggestions),
                ],
            )
            return

        try:
            record = await ctx.reminders.schedule(user_id, channel_id, parsed.text, parsed.time)
        except ReminderError as exc:
            await update_or_say(client, say, placeholder, text=f"⚠️ I couldn't set your reminder ({exc})")
            return

        tips = await parser_agent.time_management_tips(parsed.text, ctx.ai)
        display_time = parser_agent.format_display_time(parsed.time)
        await update_or_say(
            client,
            say,
            placeholder,
            text=f"Reminder set: {record.content} on {display_time}",
            blocks=confirmation_blocks(record, display_time, tips),
        )
    except SlackApiError as exc:
        _LOGGER.error("Error handling /reminder command: %s", exc)
        await report_error(say, "❌ Sorry, something went wrong while setting your reminder.")


async def list_reminders(ctx: BotContext, user_id: str, respond) -> None:
    records = await ctx.reminders.list_for_user(user_id)
    if not records:
        await respond(response_type="ephemeral", text="You have no pending reminders.")
        return

    listing: List[blocks.Block] = [blocks.header("⏰ Your Reminders")]
    for record in records:
        when = parser_agent.format_display_time(record.reminder_time.astimezone(ctx.tz))
        listing.append(blocks.section(f"*{record.content}*\n{when}\n`{record.reminder_id}`"))
        listing.append(blocks.actions(delete_button(record.reminder_id)))
    await respond(response_type="ephemeral", text=f"You have {len(records)} pending reminders.", blocks=listing)


async def delete_reminder(ctx: BotContext, reminder_id: str, respond) -> None:
    if not reminder_id:
        await respond(response_type="ephemeral", text="Please give the reminder id: `/reminder delete <id>`")
        return
    try:
        record = await ctx.reminders.delete(reminder_id)
    except ReminderError as exc:
        await respond(response_type="ephemeral", text=f"I couldn't delete reminder `{reminder_id}`: {exc}")
        return
    await respond(response_type="ephemeral", text=f"🗑️ Deleted reminder: {record.content}")
