"""/task: turn a user's pending reminders into a prioritised plan."""

from __future__ import annotations

from app.context import BotContext
from app.services.parser_agent import format_display_time
from app.utils import blocks

_PLAN_TEMPLATE = (
    "Here are my upcoming reminders and tasks:\n{listing}\n\n"
    "Prioritise them, suggest an order to tackle them in, flag anything that looks at risk, "
    "and give a short plan for today."
)


async def handle_task(ctx: BotContext, command: dict, respond) -> None:
    user_id = command.get("user_id")
    records = await ctx.reminders.list_for_user(user_id)
    if not records:
        await respond(
            response_type="ephemeral",
            text="You have no active reminders. Add one with `/reminder [task] [time]` and I'll help you plan.",
        )
        return

    listing = "\n".join(
        f"- {r.content} (due {format_display_time(r.reminder_time.astimezone(ctx.tz))})" for r in records
    )
    plan = await ctx.ai.respond(_PLAN_TEMPLATE.format(listing=listing), "task")

    await respond(
        response_type="ephemeral",
        text="📋 Your task plan",
        blocks=[
            blocks.header("📋 Your Task Plan"),
            blocks.context(f"Based on {len(records)} active reminders"),
            blocks.divider(),
            *blocks.sections(plan),
        ],
    )
