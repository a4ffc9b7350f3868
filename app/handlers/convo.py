"""/convo: summarise the recent conversation in a channel."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from slack_sdk.errors import SlackApiError

from app.context import BotContext
from app.services.reminders import slack_error
from app.utils import blocks

_LOGGER = logging.getLogger(__name__)

SUMMARY_TITLE = "💬 Conversation Summary"

_SUMMARY_TEMPLATE = (
    "Summarize this Slack conversation. Structure the summary as:\n"
    "1. Main topics discussed\n"
    "2. Decisions made\n"
    "3. Action items (with owners where mentioned)\n"
    "4. Open questions\n\n"
    "Conversation:\n{transcript}"
)


def parse_limit(text: Optional[str], default: int = 50, maximum: int = 100) -> int:
    """``/convo`` argument → message count. Junk and non-positive values give ``default``."""
    try:
        limit = int((text or "").strip())
    except ValueError:
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)


class NameResolver:
    """Best-effort ``user id → display name``, cached for one summary."""

    def __init__(self, client):
        self.client = client
        self._cache: Dict[str, str] = {}

    async def name(self, user_id: Optional[str]) -> str:
        if not user_id:
            return "Unknown"
        if user_id not in self._cache:
            self._cache[user_id] = await self._lookup(user_id)
        return self._cache[user_id]

    async def _lookup(self, user_id: str) -> str:
        try:
            response = await self.client.users_info(user=user_id)
        except SlackApiError as exc:
            _LOGGER.warning("Couldn't resolve user %s: %s", user_id, slack_error(exc))
            return user_id
        user = response.get("user") or {}
        profile = user.get("profile") or {}
        return profile.get("display_name") or profile.get("real_name") or user.get("name") or user_id


def _is_own_summary(message: dict) -> bool:
    return bool(message.get("bot_id")) and (message.get("text") or "").startswith(SUMMARY_TITLE)


async def build_transcript(messages: List[dict], resolver: NameResolver) -> str:
    lines = []
    # history arrives newest first
    for message in reversed(messages):
        text = (message.get("text") or "").strip()
        if not text or _is_own_summary(message):
            continue
        author = message.get("username") if message.get("bot_id") else await resolver.name(message.get("user"))
        lines.append(f"{author or 'bot'}: {text}")
    return "\n".join(lines)


async def handle_convo(ctx: BotContext, command: dict, client, respond) -> None:
    settings = ctx.settings
    limit = parse_limit(command.get("text"), settings.CONVO_DEFAULT_LIMIT, settings.CONVO_MAX_LIMIT)
    channel_id = command.get("channel_id")
    user_id = command.get("user_id")

    try:
        history = await client.conversations_history(channel=channel_id, limit=limit)
    except SlackApiError as exc:
        _LOGGER.error("Error fetching history for %s: %s", channel_id, slack_error(exc))
        await respond(
            response_type="ephemeral",
            text=f"I couldn't access the channel history: {slack_error(exc)}",
        )
        return

    transcript = await build_transcript(history.get("messages") or [], NameResolver(client))
    if not transcript:
        await respond(response_type="ephemeral", text="There are no recent messages to summarize in this channel.")
        return

    summary = await ctx.ai.respond(_SUMMARY_TEMPLATE.format(transcript=transcript), "convo")
    await respond(
        response_type="in_channel",
        text=SUMMARY_TITLE,
        blocks=[
            blocks.header(SUMMARY_TITLE),
            blocks.context(f"*Requested by:* <@{user_id}> | *Last {limit} messages*"),
            blocks.divider(),
            *blocks.sections(summary),
        ],
    )
