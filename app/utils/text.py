"""Cosmetic cleanup of model output before it is posted to Slack."""

from __future__ import annotations

import re

_LETTER_KEYWORDS = (
    "Dear ",
    "Subject:",
    "To Whom It May Concern",
    "Best regards,",
    "Sincerely,",
    "Thank you,",
    "Regards,",
    "Yours truly,",
    "Warm regards,",
)

_PARAGRAPH_MARKER = re.compile(r"\|\|PARAGRAPH\|\|")
_BLANK_RUN = re.compile(r"\n\s*\n")
_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"\*(.*?)\*")
_RULE = re.compile(r"---+")
_HEADER = re.compile(r"^[ \t]*#+[ \t]+(.*)$", re.MULTILINE)
_BULLET = re.compile(r"^[ \t]*[-•*][ \t]+", re.MULTILINE)
_NUMBERED = re.compile(r"^[ \t]*(\d+)[.)][ \t]+", re.MULTILINE)
_KEYWORD_BREAKS = [
    re.compile(r"([^\n])(" + re.escape(keyword) + ")") for keyword in _LETTER_KEYWORDS
]

_MAX_PASSES = 5


def _is_vertical(text: str) -> bool:
    """True when the text arrived one character per line."""
    lines = text.split("\n")
    if len(lines) < 4:
        return False
    short = sum(1 for line in lines if len(line) <= 1)
    return short > len(lines) * 0.8


def _cleanup_once(text: str) -> str:
    if _is_vertical(text):
        text = text.replace("\n", "")

    text = _PARAGRAPH_MARKER.sub("\n\n", text)
    text = _BLANK_RUN.sub("\n\n", text)

    text = _BOLD.sub(r"\1", text)
    text = _ITALIC.sub(r"\1", text)
    text = _RULE.sub("", text)
    text = _HEADER.sub(r"\1", text)

    text = _BULLET.sub("• ", text)
    text = _NUMBERED.sub(r"\1. ", text)

    for pattern in _KEYWORD_BREAKS:
        text = pattern.sub(r"\1\n\n\2", text)

    # removing markers can leave fresh blank-line runs behind
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def cleanup_markdown(text: str | None) -> str | None:
    """Strip markdown artifacts the model tends to emit.

    Runs the cleanup until the text stops changing, so feeding already
    cleaned text back in returns it unchanged.
    """
    if not text:
        return text

    for _ in range(_MAX_PASSES):
        cleaned = _cleanup_once(text)
        if cleaned == text:
            break
        text = cleaned
    return text


def short_prefix(text: str, words: int = 5) -> str:
    """First ``words`` words of ``text`` with an ellipsis when truncated."""
    parts = text.split()
    prefix = " ".join(parts[:words])
    return prefix + ("..." if len(parts) > words else "")


def strip_mentions(text: str | None) -> str:
    """Remove ``<@U123>`` user mentions and surrounding whitespace."""
    return re.sub(r"<@[A-Z0-9]+(?:\|[^>]*)?>", "", text or "").strip()
