"""/audit: roadmap audits and the issue-quality audit."""

from __future__ import annotations

import json
import logging
from typing import List

from app.context import BotContext, Unavailable
from app.types.parser_contract import IssueFinding
from app.utils import blocks

_LOGGER = logging.getLogger(__name__)

ISSUES_KEYWORD = "issues"
MAX_LISTED_ISSUES = 20


async def handle_audit(ctx: BotContext, command: dict, respond, say) -> None:
    project_id = (command.get("text") or "").strip()
    user_id = command.get("user_id")

    if isinstance(ctx.database, Unavailable):
        await respond(response_type="ephemeral", text=f"❌ {ctx.database.describe()}")
        return

    try:
        if not project_id:
            await _list_projects(ctx, respond)
        elif project_id.lower() == ISSUES_KEYWORD:
            await _audit_issues(ctx, user_id, respond, say)
        else:
            await _audit_roadmap(ctx, project_id, user_id, respond, say)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Error handling /audit command: %s", exc)
        await respond(
            response_type="ephemeral",
            text=f"❌ Error processing the audit: {exc}\nPlease try again later.",
        )


async def _list_projects(ctx: BotContext, respond) -> None:
    projects = await ctx.database.list_roadmaps()
    if not projects:
        await respond(response_type="in_channel", text="No roadmap projects found in the database.")
        return

    listing = "\n".join(f"• *{p['project_id']}*: {p.get('name') or 'Untitled'}" for p in projects)
    await respond(
        response_type="ephemeral",
        text="Available roadmap projects",
        blocks=[
            blocks.section("*Available roadmap projects:*\n" + listing),
            blocks.section("To audit a project, use `/audit [project-id]`, or `/audit issues` to check issue hygiene."),
        ],
    )


async def _audit_roadmap(ctx: BotContext, project_id: str, user_id: str, respond, say) -> None:
    await respond(response_type="ephemeral", text=f"🔍 Analyzing roadmap data for *{project_id}*...")

    roadmap = await ctx.database.get_roadmap(project_id)
    if not roadmap:
        projects = await ctx.database.list_roadmaps()
        known = ", ".join(p["project_id"] for p in projects) or "none"
        await respond(
            response_type="ephemeral",
            text=f"❌ No roadmap data found for project: *{project_id}*\nAvailable project IDs: {known}",
        )
        return

    data = roadmap.get("data") or {}
    prompt = (
        "Analyze this project roadmap and provide a detailed audit with actionable insights. "
        "Be specific, concise, and practical:\n\n"
        + json.dumps(data, indent=2, default=str)
    )
    result = await ctx.ai.respond(prompt, "audit")

    name = data.get("name") or project_id
    await say(
        text=f"📊 Roadmap Audit: {name}",
        blocks=[
            blocks.header(f"📊 Roadmap Audit: {name}"),
            blocks.context(
                f"*Requested by:* <@{user_id}> | *Status:* {data.get('status', 'Unknown')} "
                f"| *Completion:* {data.get('completion_percentage', 0)}%"
            ),
            blocks.divider(),
            *blocks.sections(result),
        ],
    )


def _describe_finding(f: IssueFinding) -> str:
    where = " › ".join(p for p in (f.workspace, f.pillar, f.theme) if p) or "unassigned"
    return f"• *{f.title}* ({where}): missing {', '.join(f.missing)}"


async def _audit_issues(ctx: BotContext, user_id: str, respond, say) -> None:
    await respond(response_type="ephemeral", text="🔍 Checking issues for missing descriptions and themes...")

    findings: List[IssueFinding] = await ctx.database.audit_issues()
    if not findings:
        await respond(
            response_type="in_channel",
            text="✅ Every issue has a description and a theme. Nothing to flag.",
        )
        return

    listing = [_describe_finding(f) for f in findings]
    prompt = (
        f"An issue-tracker audit flagged {len(findings)} issues that are missing a description "
        "and/or a theme. Summarize the patterns you see (which workspaces, pillars or themes are "
        "most affected), the risk this poses to roadmap planning, and 3 concrete next steps.\n\n"
        + "\n".join(listing)
    )
    summary = await ctx.ai.respond(prompt, "audit")

    shown = listing[:MAX_LISTED_ISSUES]
    if len(listing) > MAX_LISTED_ISSUES:
        shown.append(f"_...and {len(listing) - MAX_LISTED_ISSUES} more_")

    await say(
        text=f"🧹 Issue audit: {len(findings)} issues need attention",
        blocks=[
            blocks.header("🧹 Issue Audit"),
            blocks.context(f"*Requested by:* <@{user_id}> | *Flagged issues:* {len(findings)}"),
            blocks.divider(),
            *blocks.sections(summary),
            blocks.divider(),
            *blocks.sections("*Flagged issues:*\n" + "\n".join(shown)),
        ],
    )
