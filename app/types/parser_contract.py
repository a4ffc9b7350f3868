"""Pydantic models shared by the LLM gateway, the reminder parser, the
reminder scheduler and the persistence layer.

These classes are intentionally framework-agnostic so they can be reused by
handlers, workers and tests without pulling in Slack or database layers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

TaskType = Literal["audit", "draft", "reminder", "direct", "mention", "default"]

ReminderStatus = Literal["pending", "processing", "sent", "failed", "deleted"]
Delivery = Literal["timer", "slack"]

# Formats the model is asked to produce, plus the ISO variants it drifts into
_TIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S")


# ──────────────────────────────
# Language model status
# ──────────────────────────────


class ApiStatus(BaseModel):
    """Reachability of the completion API, mutated by every gateway call.

    Read only for diagnostics (``/health`` and logs).
    """

    available: bool = True
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None


# ──────────────────────────────
# Reminder parsing
# ──────────────────────────────


class ParsedReminder(BaseModel):
    """JSON object the model returns for a reminder request.

    ``time`` is ``None`` when no date could be extracted (parse-failed path).
    Naive datetimes are localised by the parser, not here.
    """

    time: Optional[datetime] = None
    text: str = ""

    @field_validator("time", mode="before")
    def _parse_time(cls, v):  # noqa: N805
        if v is None or isinstance(v, datetime):
            return v
        if not isinstance(v, str) or not v.strip():
            return None
        raw = v.strip()
        for fmt in _TIME_FORMATS:
            try:
                return datetime.strptime(raw, fmt)
            except ValueError:
                continue
        return datetime.fromisoformat(raw)

    @field_validator("text", mode="before")
    def _strip_text(cls, v):  # noqa: N805
        return (v or "").strip() if isinstance(v, str) or v is None else str(v)


# ──────────────────────────────
# Reminder records
# ──────────────────────────────


class ReminderRecord(BaseModel):
    """A reminder as stored by either reminder store."""

    reminder_id: str
    user_id: str
    channel_id: str
    content: str
    reminder_time: datetime
    delivery: Delivery = "timer"
    external_id: Optional[str] = None
    status: ReminderStatus = "pending"
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("user_id", "channel_id")
    def _non_empty(cls, v):  # noqa: N805
        if not isinstance(v, str) or not v.strip():
            raise ValueError("user_id and channel_id must be non-empty strings")
        return v

    @field_validator("reminder_time")
    def _aware(cls, v):  # noqa: N805
        if v.tzinfo is None:
            raise ValueError("reminder_time must be timezone-aware")
        return v

    @property
    def completed(self) -> bool:
        return self.status == "sent"

    @property
    def active(self) -> bool:
        return self.status == "pending"


class IssueFinding(BaseModel):
    """One row flagged by the issue-quality audit."""

    issue_id: str
    title: str
    workspace: Optional[str] = None
    pillar: Optional[str] = None
    theme: Optional[str] = None
    missing: list[str] = Field(default_factory=list)
