from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from slack_sdk.errors import SlackApiError

from app.handlers import audit, convo, describe, draft, reminder, task
from app.types.parser_contract import IssueFinding
from conftest import FakeAI


def command(text="", **extra):
    return {"text": text, "user_id": "U1", "channel_id": "C1", **extra}


def all_text(mock):
    """Every text/blocks payload a Slack mock was called with, flattened."""
    out = []
    for call in mock.await_args_list:
        out.append(str(call.kwargs.get("text", "")))
        out.append(str(call.kwargs.get("blocks", "")))
    return "\n".join(out)


class FakeDatabase:
    def __init__(self, roadmaps=None, findings=None):
        self.roadmaps = roadmaps or {}
        self.findings = findings or []

    async def list_roadmaps(self):
        return [{"project_id": pid, "name": data.get("name")} for pid, data in self.roadmaps.items()]

    async def get_roadmap(self, project_id):
        if project_id not in self.roadmaps:
            return None
        return {"project_id": project_id, "data": self.roadmaps[project_id]}

    async def audit_issues(self, limit=200):
        return self.findings


# ── /convo ────────────────────────────────────────────────────────────────


@pytest.mark.parametrize(
    "text,expected",
    [("", 50), ("0", 50), ("-5", 50), ("abc", 50), ("150", 100), ("100", 100), ("20", 20)],
)
def test_convo_limit(text, expected):
    assert convo.parse_limit(text) == expected


@pytest.mark.asyncio
async def test_convo_summarises_history(make_ctx, client, respond):
    client.conversations_history = AsyncMock(
        return_value={
            "ok": True,
            "messages": [
                {"user": "U2", "text": "let's ship friday"},
                {"bot_id": "B1", "text": convo.SUMMARY_TITLE + " old"},
                {"user": "U2", "text": "kickoff"},
            ],
        }
    )
    ai = FakeAI("Topics: shipping")
    ctx = make_ctx(ai=ai)

    await convo.handle_convo(ctx, command("150"), client, respond)

    assert client.conversations_history.await_args.kwargs["limit"] == 100
    client.users_info.assert_awaited_once_with(user="U2")
    task_tag, prompt = ai.calls[0]
    assert task_tag == "convo"
    assert prompt.index("ana: kickoff") < prompt.index("ana: let's ship friday")
    assert convo.SUMMARY_TITLE not in prompt
    assert respond.await_args.kwargs["response_type"] == "in_channel"
    assert "Topics: shipping" in all_text(respond)


@pytest.mark.asyncio
async def test_convo_history_error(make_ctx, client, respond):
    client.conversations_history = AsyncMock(
        side_effect=SlackApiError("nope", {"ok": False, "error": "not_in_channel"})
    )
    await convo.handle_convo(make_ctx(), command(), client, respond)
    assert respond.await_args.kwargs["text"] == "I couldn't access the channel history: not_in_channel"


@pytest.mark.asyncio
async def test_convo_empty_channel(make_ctx, client, respond):
    await convo.handle_convo(make_ctx(), command(), client, respond)
    assert respond.await_args.kwargs["text"] == "There are no recent messages to summarize in this channel."


# ── /audit ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_audit_unknown_project(make_ctx, respond, say):
    ai = FakeAI()
    ctx = make_ctx(ai=ai, database=FakeDatabase({"alpha": {"name": "Alpha"}}))

    await audit.handle_audit(ctx, command("ghost"), respond, say)

    assert "❌ No roadmap data found for project: *ghost*" in respond.await_args.kwargs["text"]
    assert ai.calls == []
    say.assert_not_awaited()


@pytest.mark.asyncio
async def test_audit_project(make_ctx, respond, say):
    ai = FakeAI("Looks on track.")
    roadmap = {"name": "Alpha", "status": "active", "completion_percentage": 40}
    ctx = make_ctx(ai=ai, database=FakeDatabase({"alpha": roadmap}))

    await audit.handle_audit(ctx, command("alpha"), respond, say)

    assert ai.calls[0][0] == "audit"
    assert '"completion_percentage": 40' in ai.calls[0][1]
    posted = say.await_args.kwargs["blocks"]
    assert posted[0]["type"] == "header"
    assert "40%" in posted[1]["elements"][0]["text"]
    assert posted[2] == {"type": "divider"}
    assert posted[3]["text"]["text"] == "Looks on track."


@pytest.mark.asyncio
async def test_audit_lists_projects(make_ctx, respond, say):
    ctx = make_ctx(database=FakeDatabase({"alpha": {"name": "Alpha"}}))
    await audit.handle_audit(ctx, command(), respond, say)
    assert "*alpha*: Alpha" in all_text(respond)
    assert respond.await_args.kwargs["response_type"] == "ephemeral"


@pytest.mark.asyncio
async def test_audit_without_projects(make_ctx, respond, say):
    await audit.handle_audit(make_ctx(database=FakeDatabase()), command(), respond, say)
    assert respond.await_args.kwargs["text"] == "No roadmap projects found in the database."


@pytest.mark.asyncio
async def test_audit_without_database(make_ctx, respond, say):
    await audit.handle_audit(make_ctx(), command("alpha"), respond, say)
    assert "database isn't available" in respond.await_args.kwargs["text"]


@pytest.mark.asyncio
async def test_audit_issues_caps_listing(make_ctx, respond, say):
    findings = [
        IssueFinding(issue_id=str(i), title=f"Issue {i}", workspace="Core", missing=["description"])
        for i in range(25)
    ]
    ai = FakeAI("Mostly the Core workspace.")
    ctx = make_ctx(ai=ai, database=FakeDatabase(findings=findings))

    await audit.handle_audit(ctx, command("issues"), respond, say)

    text = all_text(say)
    assert "Mostly the Core workspace." in text
    assert "Issue 19" in text
    assert "Issue 20" not in text
    assert "and 5 more" in text
    assert "flagged 25 issues" in ai.calls[0][1]


# ── /draft ────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_draft_chain(make_ctx, client, respond, say):
    ai = FakeAI("Audience: engineers", "Hello team!")
    ctx = make_ctx(ai=ai)

    await draft.handle_draft(ctx, command("launch announcement"), client, respond, say)

    assert [c[0] for c in ai.calls] == ["draft", "draft"]
    assert "Audience: engineers" in ai.calls[1][1]
    client.chat_update.assert_awaited_once()
    assert client.chat_update.await_args.kwargs["ts"] == "111.222"
    assert "Audience: engineers" in str(client.chat_update.await_args.kwargs["blocks"])
    assert "Hello team!" in str(say.await_args.kwargs["blocks"])


@pytest.mark.asyncio
async def test_draft_usage(make_ctx, client, respond, say):
    await draft.handle_draft(make_ctx(), command("  "), client, respond, say)
    assert respond.await_args.kwargs["text"] == draft.USAGE
    say.assert_not_awaited()


# ── /reminder ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_reminder_end_to_end(make_ctx, client, respond, say):
    ai = FakeAI('{"time": "2024-01-02 15:00", "text": "Submit report"}', "Block two hours.")
    ctx = make_ctx(ai=ai)

    await reminder.handle_reminder(ctx, command("Submit report tomorrow at 3pm"), client, respond, say)

    update = client.chat_update.await_args.kwargs
    body = str(update["blocks"])
    assert "Submit report" in body
    assert "Tuesday, January 2, 2024 at 3:00 PM" in body
    assert "Block two hours." in body
    assert reminder.DELETE_ACTION in body
    pending = await ctx.reminders.list_for_user("U1")
    assert len(pending) == 1
    assert pending[0].channel_id == "C1"
    await ctx.reminders.shutdown()


@pytest.mark.asyncio
async def test_reminder_without_time_suggests(make_ctx, client, respond, say):
    ai = FakeAI('{"time": null, "text": "Call mom"}', "Try this weekend.")
    ctx = make_ctx(ai=ai)

    await reminder.handle_reminder(ctx, command("Call mom"), client, respond, say)

    assert "Try this weekend." in str(client.chat_update.await_args.kwargs["blocks"])
    assert await ctx.reminders.list_for_user("U1") == []


@pytest.mark.asyncio
async def test_reminder_list_and_delete(make_ctx, client, respond, say, clock):
    ctx = make_ctx()
    record = await ctx.reminders.schedule(
        "U1", "C1", "Ship it", datetime(2024, 1, 5, 17, 0, tzinfo=timezone.utc)
    )

    await reminder.handle_reminder(ctx, command("list"), client, respond, say)
    listing = str(respond.await_args.kwargs["blocks"])
    assert "Ship it" in listing
    assert record.reminder_id in listing

    await reminder.handle_reminder(ctx, command(f"delete {record.reminder_id}"), client, respond, say)
    assert respond.await_args.kwargs["text"] == "🗑️ Deleted reminder: Ship it"

    await reminder.handle_reminder(ctx, command(f"delete {record.reminder_id}"), client, respond, say)
    assert respond.await_args.kwargs["text"].startswith(f"I couldn't delete reminder `{record.reminder_id}`")


@pytest.mark.asyncio
async def test_reminder_usage(make_ctx, client, respond, say):
    await reminder.handle_reminder(make_ctx(), command(), client, respond, say)
    assert respond.await_args.kwargs["text"] == reminder.USAGE


@pytest.mark.asyncio
async def test_delete_button(make_ctx, respond):
    ctx = make_ctx()
    record = await ctx.reminders.schedule(
        "U1", "C1", "Ship it", datetime(2024, 1, 5, 17, 0, tzinfo=timezone.utc)
    )
    body = {"user": {"id": "U1"}, "actions": [{"action_id": "delete_reminder", "value": record.reminder_id}]}

    await describe.handle_delete_button(ctx, body, respond)
    assert respond.await_args.kwargs["text"] == "🗑️ Deleted reminder: Ship it"

    await describe.handle_delete_button(ctx, body, respond)
    assert "I couldn't delete reminder" in respond.await_args.kwargs["text"]


# ── /task and /describe ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_task_plan(make_ctx, respond):
    ai = FakeAI("1. Ship it first")
    ctx = make_ctx(ai=ai)
    for content in ("Ship it", "Write notes"):
        await ctx.reminders.schedule("U1", "C1", content, datetime(2024, 1, 5, 17, 0, tzinfo=timezone.utc))

    await task.handle_task(ctx, command(), respond)

    assert ai.calls[0][0] == "task"
    assert "Ship it" in ai.calls[0][1] and "Write notes" in ai.calls[0][1]
    assert "Based on 2 active reminders" in str(respond.await_args.kwargs["blocks"])
    await ctx.reminders.shutdown()


@pytest.mark.asyncio
async def test_task_without_reminders(make_ctx, respond):
    ai = FakeAI()
    await task.handle_task(make_ctx(ai=ai), command(), respond)
    assert "no active reminders" in respond.await_args.kwargs["text"]
    assert ai.calls == []


@pytest.mark.asyncio
async def test_describe_offers_buttons(make_ctx, respond):
    await describe.handle_describe(make_ctx(), command(), respond)
    body = str(respond.await_args.kwargs["blocks"])
    assert describe.TRY_ACTION in body
    assert describe.HELP_ACTION in body
