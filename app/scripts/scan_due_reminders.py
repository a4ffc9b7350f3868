"""Periodic scanner to send due reminders.
Run via a platform cron every minute:
    python -m app.scripts.scan_due_reminders
"""

from __future__ import annotations

import asyncio
import logging
from zoneinfo import ZoneInfo

from slack_sdk.web.async_client import AsyncWebClient

from app.services.reminders import ReminderScheduler
from config import settings
from db import DatabaseGateway

_LOGGER = logging.getLogger(__name__)


async def main() -> int:
    gateway = DatabaseGateway.from_settings(settings)
    scheduler = ReminderScheduler(
        AsyncWebClient(token=settings.SLACK_BOT_TOKEN),
        gateway,
        delivery="timer",
        tz=ZoneInfo(settings.DEFAULT_TIMEZONE),
    )
    try:
        return await scheduler.dispatch_due()
    finally:
        await gateway.dispose()


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL)
    _LOGGER.info("[CRON] scan_due_reminders: job started")
    try:
        sent = asyncio.run(main())
        _LOGGER.info("[CRON] scan_due_reminders: job completed successfully (%d sent)", sent)
    except Exception as e:  # noqa: BLE001
        _LOGGER.error("[CRON] scan_due_reminders: job failed: %s", e)
        raise SystemExit(1)
