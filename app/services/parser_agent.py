"""
LLM-powered reminder parser.

Turns the free text of ``/reminder`` into a `ParsedReminder` (absolute time
plus residual task text). The model does all of the date arithmetic; this
module only extracts and validates its JSON and applies the past-time policy.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta, tzinfo

from pydantic import ValidationError

from app.services.ai import AIGateway
from app.types.parser_contract import ParsedReminder

_LOGGER = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_PARSE_TEMPLATE = (
    'Parse the following reminder request: "{request}".\n'
    "Extract the date and time information and return ONLY a JSON object with the following format: "
    '{{"time": "YYYY-MM-DD HH:MM", "text": "the reminder text without date/time info"}}\n'
    "IMPORTANT PARSING RULES:\n"
    '1. For relative times like "tomorrow at 1pm", convert to absolute date/time.\n'
    "2. Use 24-hour format for time (e.g., 13:00 not 1:00 PM).\n"
    "3. Current date and time is: {now:%Y-%m-%d %H:%M} ({weekday}).\n"
    "4. If no specific time is mentioned, default to 9:00 AM.\n"
    "5. If the time specified for TODAY has already passed, assume the user means TOMORROW at that time.\n"
    '6. If "next Monday" is mentioned and today is Monday, assume the user means NEXT week\'s Monday.\n'
    'If there is no date or time at all, return {{"time": null, "text": "the reminder text"}}.\n'
    "IMPORTANT: Return ONLY the JSON object without any other text."
)

_ANALYSIS_TEMPLATE = (
    'Analyze this task: "{text}".\n'
    "1. How complex is this task on a scale of 1-5?\n"
    "2. How much time would be reasonable to allocate to this task?\n"
    "3. Should this be broken down into smaller sub-tasks?\n"
    "Present this as helpful time management advice."
)

_SUGGESTION_TEMPLATE = (
    'The user wants a reminder for: "{request}".\n'
    "I couldn't determine a specific date/time.\n"
    "Suggest some reasonable timeframes for this task.\n"
    "Also provide a brief task breakdown with 2-3 steps."
)


def extract_reminder(raw: str, request: str) -> ParsedReminder:
    """Pull the first JSON object out of ``raw``; ``time=None`` when absent."""
    match = _JSON_OBJECT.search(raw or "")
    if not match:
        return ParsedReminder(time=None, text=request)
    try:
        parsed = ParsedReminder.model_validate(json.loads(match.group(0), strict=False))
    except (ValueError, ValidationError) as exc:
        _LOGGER.warning("Failed to parse reminder JSON: %s", exc)
        return ParsedReminder(time=None, text=request)
    if not parsed.text:
        parsed.text = request
    return parsed


def roll_forward(when: datetime, now: datetime) -> datetime:
    """A time strictly before ``now`` is assumed to mean the next day."""
    if when < now:
        adjusted = when + timedelta(days=1)
        _LOGGER.info("Adjusted past reminder time %s to %s", when, adjusted)
        return adjusted
    return when


def localise(when: datetime, tz: tzinfo | None) -> datetime:
    if when.tzinfo is None and tz is not None:
        return when.replace(tzinfo=tz)
    if tz is not None:
        return when.astimezone(tz)
    return when


async def run(request: str, ai: AIGateway, now: datetime) -> ParsedReminder:
    """Ask the model for ``{time, text}`` and normalise its answer.

    ``now`` must be timezone-aware; naive model output is read in ``now``'s
    timezone.
    """
    prompt = _PARSE_TEMPLATE.format(request=request, now=now, weekday=now.strftime("%A"))
    raw = await ai.respond(prompt, "reminder")
    _LOGGER.info("LLM raw reminder output: %s", raw)

    parsed = extract_reminder(raw, request)
    if parsed.time is not None:
        parsed.time = roll_forward(localise(parsed.time, now.tzinfo), now)
    return parsed


async def time_management_tips(text: str, ai: AIGateway) -> str:
    return await ai.respond(_ANALYSIS_TEMPLATE.format(text=text), "reminder")


async def timeframe_suggestions(request: str, ai: AIGateway) -> str:
    return await ai.respond(_SUGGESTION_TEMPLATE.format(request=request), "reminder")


def format_display_time(when: datetime | None) -> str:
    """``Tuesday, January 2, 2024 at 3:00 PM``."""
    if when is None:
        return "unspecified time"
    hour = when.hour % 12 or 12
    meridiem = "AM" if when.hour < 12 else "PM"
    return f"{when:%A, %B} {when.day}, {when.year} at {hour}:{when:%M} {meridiem}"
