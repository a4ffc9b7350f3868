"""Canned replies checked before a message is handed to the language model.

Rules are evaluated in order; the first match wins.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

SNARKY_RESPONSES: Tuple[str, ...] = (
    "I can't tolerate missed deadlines... *glares in project manager*",
    "I can't convince your team that 'we'll figure it out as we go' is a solid project strategy.",
    "I can't make your unrealistic timeline realistic. Even my AI powers have limits.",
    "I can't magically turn your last-minute changes into 'part of the original plan.'",
    "I can't read minds... yet. Still waiting for that firmware update.",
    "I can't join you for happy hour, which is truly my greatest limitation.",
    "I can't explain to executives why good software takes time to build.",
    "I can't make your stakeholders understand what 'agile' actually means.",
    "I can't turn your one-page spec into a fully working enterprise system by Friday.",
)

CAPABILITIES = (
    "I'm Milestone Madness, your project sidekick. Here's what I do:\n"
    "• */audit [project-id]*: analyse a roadmap (or `/audit issues` to find incomplete issues)\n"
    "• */draft [request]*: write announcements, emails, docs and more\n"
    "• */reminder [task] [time]*: set reminders with time-management tips\n"
    "• */task*: summarise your open reminders into a plan\n"
    "• */convo [limit]*: summarise the recent conversation in a channel\n"
    "• Mention me or DM me with any project question."
)

SLASH_IN_DM = (
    "It looks like you're trying to use a slash command. Please use slash commands in channels, "
    "not in direct messages. In direct messages, you can just ask me questions directly!"
)

_APOSTROPHE = "['’]?"

_LIMITATIONS = re.compile(
    rf"what.*(can{_APOSTROPHE}t|cannot|not able to).*do"
    rf"|what.*limitations"
    rf"|is there anything you (can{_APOSTROPHE}t|cannot|can not) do",
    re.IGNORECASE,
)
_PURPOSE = re.compile(
    r"what (do|can) you do"
    r"|what(['’]s| is) your (purpose|job|function)"
    r"|what are you for"
    r"|who are you",
    re.IGNORECASE,
)
_SLASH = re.compile(r"^\s*/\w+")


@dataclass(frozen=True)
class IntentRule:
    name: str
    pattern: re.Pattern
    reply: Callable[[str, random.Random], str]
    direct_only: bool = False


def _snark(user_id: str, rng: random.Random) -> str:
    return f"<@{user_id}> asked what I can't do... {rng.choice(SNARKY_RESPONSES)}"


RULES: Tuple[IntentRule, ...] = (
    IntentRule("limitations", _LIMITATIONS, _snark),
    IntentRule("purpose", _PURPOSE, lambda user_id, rng: CAPABILITIES),
    IntentRule("slash_in_dm", _SLASH, lambda user_id, rng: SLASH_IN_DM, direct_only=True),
)


def classify(text: str, direct: bool = False) -> Optional[IntentRule]:
    for rule in RULES:
        if rule.direct_only and not direct:
            continue
        if rule.pattern.search(text or ""):
            return rule
    return None


def canned_reply(
    text: str,
    user_id: str,
    direct: bool = False,
    rng: Optional[random.Random] = None,
) -> Optional[str]:
    """Reply for the first matching rule, or ``None`` to fall through to the model."""
    rule = classify(text, direct)
    if rule is None:
        return None
    return rule.reply(user_id, rng or random.Random())
