"""Placeholder-then-update posting shared by the command and message handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from slack_sdk.errors import SlackApiError

from app.services.reminders import slack_error
from app.utils.blocks import Block

_LOGGER = logging.getLogger(__name__)

THINKING = "_Thinking..._"


@dataclass
class Placeholder:
    channel: str
    ts: str


async def post_placeholder(say, text: str = THINKING, thread_ts: Optional[str] = None) -> Optional[Placeholder]:
    """Post a visible "working" message; ``None`` if Slack refused it."""
    try:
        response = await say(text=text, thread_ts=thread_ts) if thread_ts else await say(text=text)
    except SlackApiError as exc:
        _LOGGER.error("Error posting placeholder: %s", slack_error(exc))
        return None
    return Placeholder(channel=response["channel"], ts=response["ts"])


async def update_or_say(
    client,
    say,
    placeholder: Optional[Placeholder],
    text: str,
    blocks: Optional[List[Block]] = None,
    thread_ts: Optional[str] = None,
) -> None:
    """Replace the placeholder in place, or post a fresh message when that fails."""
    if placeholder is not None:
        try:
            kwargs = {"channel": placeholder.channel, "ts": placeholder.ts, "text": text}
            if blocks:
                kwargs["blocks"] = blocks
            await client.chat_update(**kwargs)
            return
        except SlackApiError as exc:
            _LOGGER.warning("Couldn't update placeholder, posting instead: %s", slack_error(exc))

    kwargs = {"text": text}
    if blocks:
        kwargs["blocks"] = blocks
    if thread_ts:
        kwargs["thread_ts"] = thread_ts
    await say(**kwargs)


async def report_error(say, text: str, thread_ts: Optional[str] = None) -> None:
    """Best-effort plain-text error; a failure here is only logged."""
    try:
        if thread_ts:
            await say(text=text, thread_ts=thread_ts)
        else:
            await say(text=text)
    except SlackApiError as exc:
        _LOGGER.error("Error sending error message: %s", slack_error(exc))
