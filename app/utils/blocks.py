"""Small builders for Slack Block Kit payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

Block = Dict[str, Any]

# Slack rejects section text longer than this
SECTION_LIMIT = 3000
HEADER_LIMIT = 150


def header(text: str) -> Block:
    return {"type": "header", "text": {"type": "plain_text", "text": text[:HEADER_LIMIT], "emoji": True}}


def section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text[:SECTION_LIMIT]}}


def sections(text: str) -> List[Block]:
    """Split long text over several sections, preferring paragraph breaks."""
    blocks: List[Block] = []
    remaining = text or " "
    while remaining:
        if len(remaining) <= SECTION_LIMIT:
            blocks.append(section(remaining))
            break
        cut = remaining.rfind("\n", 0, SECTION_LIMIT)
        if cut <= 0:
            cut = SECTION_LIMIT
        blocks.append(section(remaining[:cut]))
        remaining = remaining[cut:].lstrip("\n")
    return blocks


def fields(*texts: str) -> Block:
    return {"type": "section", "fields": [{"type": "mrkdwn", "text": t} for t in texts]}


def context(text: str) -> Block:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def divider() -> Block:
    return {"type": "divider"}


def button(text: str, action_id: str, value: str = "", style: Optional[str] = None) -> Dict[str, Any]:
    element: Dict[str, Any] = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
        "value": value or action_id,
    }
    if style:
        element["style"] = style
    return element


def actions(*elements: Dict[str, Any]) -> Block:
    return {"type": "actions", "elements": list(elements)}
