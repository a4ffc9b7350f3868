"""/describe and the buttons it offers."""

from __future__ import annotations

from app.context import BotContext
from app.services.intents import CAPABILITIES
from app.services.reminders import ReminderError
from app.utils import blocks

TRY_ACTION = "try_bot"
HELP_ACTION = "help_button"


def describe_blocks():
    return [
        blocks.header("🚀 Milestone Madness"),
        blocks.section(CAPABILITIES),
        blocks.divider(),
        blocks.actions(
            blocks.button("Try it", TRY_ACTION, style="primary"),
            blocks.button("Help", HELP_ACTION),
        ),
    ]


def help_blocks():
    return [
        blocks.header("❓ Getting help"),
        blocks.fields(
            "*/audit [project-id]*\nRoadmap audit. `/audit` lists projects, `/audit issues` checks issue hygiene.",
            "*/draft [request]*\nAnnouncements, emails and docs.",
            "*/reminder [task] [time]*\nAlso `/reminder list` and `/reminder delete [id]`.",
            "*/task*\nA plan built from your open reminders.",
            "*/convo [limit]*\nSummary of the last messages here (max 100).",
            "*Mention or DM me*\nAsk anything about your project.",
        ),
    ]


async def handle_describe(ctx: BotContext, command: dict, respond) -> None:
    await respond(response_type="ephemeral", text=CAPABILITIES, blocks=describe_blocks())


async def handle_try(ctx: BotContext, body: dict, respond) -> None:
    user_id = (body.get("user") or {}).get("id")
    await respond(
        response_type="ephemeral",
        replace_original=False,
        text=(
            f"Let's go, <@{user_id}>! Try `/reminder Review roadmap tomorrow at 10am`, "
            "`/draft a sprint kickoff announcement`, or just mention me with a question."
        ),
    )


async def handle_help(ctx: BotContext, body: dict, respond) -> None:
    await respond(response_type="ephemeral", replace_original=False, text="Getting help", blocks=help_blocks())


async def handle_delete_button(ctx: BotContext, body: dict, respond) -> None:
    action = (body.get("actions") or [{}])[0]
    reminder_id = action.get("value") or ""
    try:
        record = await ctx.reminders.delete(reminder_id)
    except ReminderError as exc:
        await respond(
            response_type="ephemeral",
            replace_original=False,
            text=f"I couldn't delete reminder `{reminder_id}`: {exc}",
        )
        return
    await respond(
        response_type="ephemeral",
        replace_original=False,
        text=f"🗑️ Deleted reminder: {record.content}",
    )
