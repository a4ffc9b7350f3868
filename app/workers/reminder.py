"""Reminder delivery tasks for hosts without a long-lived bot process."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from app.celery_app import celery_app
from app.services.reminders import post_reminder, slack_error
from app.types.parser_contract import ReminderRecord
from config import settings
from db import DatabaseGateway

_LOGGER = logging.getLogger(__name__)


def _gateway() -> DatabaseGateway:
    return DatabaseGateway.from_settings(settings)


def _client() -> AsyncWebClient:
    return AsyncWebClient(token=settings.SLACK_BOT_TOKEN)


async def claim_due(limit: int = 100) -> list[ReminderRecord]:
    gateway = _gateway()
    try:
        return await gateway.claim_due_reminders(limit=limit, delivery="timer")
    finally:
        await gateway.dispose()


async def settle_scheduled(limit: int = 100) -> int:
    """Mark due ``slack`` reminders sent; Slack already posted them."""
    gateway = _gateway()
    try:
        settled = await gateway.claim_due_reminders(limit=limit, delivery="slack")
        for record in settled:
            await gateway.mark_reminder(record.reminder_id, "sent")
        return len(settled)
    finally:
        await gateway.dispose()


async def deliver(record: ReminderRecord) -> None:
    """Post one claimed reminder and mark it sent; failures are marked and re-raised."""
    gateway = _gateway()
    try:
        try:
            await post_reminder(_client(), record, ZoneInfo(settings.DEFAULT_TIMEZONE))
        except Exception as exc:
            error = slack_error(exc) if isinstance(exc, SlackApiError) else repr(exc)
            await gateway.mark_reminder(record.reminder_id, "failed", error)
            raise
        await gateway.mark_reminder(record.reminder_id, "sent")
    finally:
        await gateway.dispose()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.handle", bind=True, max_retries=3)
def handle(self, reminder_id: str, user_id: str, channel_id: str, content: str, reminder_time: str):  # noqa: D401
    """Post a single reminder to Slack and mark DB status accordingly."""
    record = ReminderRecord(
        reminder_id=reminder_id,
        user_id=user_id,
        channel_id=channel_id,
        content=content,
        reminder_time=datetime.fromisoformat(reminder_time),
        status="processing",
    )
    try:
        asyncio.run(deliver(record))
    except SlackApiError as exc:
        _LOGGER.error("Reminder %s failed: %s", reminder_id, slack_error(exc))
        raise self.retry(exc=exc)
    _LOGGER.info("Reminder sent %s", reminder_id)


@celery_app.task(name="app.workers.reminder.dispatch_due", bind=True)
def dispatch_due(self):  # noqa: D401
    """Claim due reminders and enqueue handle tasks for each."""
    try:
        due = asyncio.run(claim_due(limit=100))
        settled = asyncio.run(settle_scheduled(limit=100))
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc, countdown=30)
    if settled:
        _LOGGER.info("Marked %d Slack-scheduled reminders sent", settled)

    for record in due:
        celery_app.send_task(
            "app.workers.reminder.handle",
            args=[
                record.reminder_id,
                record.user_id,
                record.channel_id,
                record.content,
                record.reminder_time.isoformat(),
            ],
            queue="reminder",
        )
    return len(due)
