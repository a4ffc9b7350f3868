"""/draft: analysis pass, then the draft itself."""

from __future__ import annotations

import asyncio
import logging

from app.context import BotContext
from app.handlers.replies import post_placeholder, report_error, update_or_say
from app.utils import blocks

_LOGGER = logging.getLogger(__name__)

USAGE = "Please provide a request for drafting. Example: `/draft a project announcement for the team`"

_ANALYSIS_TEMPLATE = (
    'Analyze this content request: "{request}".\n'
    "Identify:\n"
    "1. The type of content needed (email, announcement, documentation, etc.)\n"
    "2. The target audience\n"
    "3. The appropriate tone and style\n"
    "4. Key points that should be included\n"
    "Provide a brief analysis that will help in creating the perfect draft."
)

_DRAFT_TEMPLATE = (
    'Create a professional draft for: "{request}".\n'
    "Use this analysis to guide your draft:\n{analysis}\n"
    "Make it well-structured, engaging, and ready to use."
)


async def handle_draft(ctx: BotContext, command: dict, client, respond, say) -> None:
    request = (command.get("text") or "").strip()
    if not request:
        await respond(response_type="ephemeral", text=USAGE)
        return

    user_id = command.get("user_id")
    placeholder = await post_placeholder(say, f"✍️ Drafting content for <@{user_id}>... _Thinking..._")
    try:
        analysis = await ctx.ai.respond(_ANALYSIS_TEMPLATE.format(request=request), "draft")
        draft = await ctx.ai.respond(_DRAFT_TEMPLATE.format(request=request, analysis=analysis), "draft")

        await update_or_say(
            client,
            say,
            placeholder,
            text=f"📝 Content analysis for: {request}",
            blocks=[
                blocks.header("📝 Content Analysis"),
                blocks.context(f"*Requested by:* <@{user_id}> | *Request:* {request}"),
                *blocks.sections(analysis),
            ],
        )
        # keep analysis above the draft in the channel
        await asyncio.sleep(ctx.settings.POST_ORDER_DELAY)
        await say(
            text=f"✨ Draft: {request}",
            blocks=[
                blocks.header("✨ Your Draft"),
                blocks.divider(),
                *blocks.sections(draft),
            ],
        )
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Error handling /draft command: %s", exc)
        await report_error(say, "❌ Sorry, I couldn't create that draft. Please try again later.")
