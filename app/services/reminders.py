"""
Reminder scheduling and delivery.

Reminders are persisted through a *store* (the database gateway, or
`InMemoryReminderStore` when no database is configured) and delivered in one
of two ways:

* ``timer``: an asyncio task per reminder in this process. Timers are
  re-armed from the store on start-up and the Celery beat sweep
  (``app.workers.reminder.dispatch_due``) covers hosts that don't keep a
  process alive.
* ``slack``: ``chat.scheduleMessage``; Slack fires the message itself and
  rows past their post time are marked sent on the next listing or sweep.

Delivery always goes through ``claim_reminder`` (pending → processing) so a
timer and the sweep can never post the same reminder twice.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, List, Optional, Protocol
from uuid import uuid4

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from app.services.parser_agent import format_display_time
from app.types.parser_contract import ReminderRecord
from app.utils import blocks

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ──────────────────────────────────────────────────────────────────────────
# Errors
# ──────────────────────────────────────────────────────────────────────────


class ReminderError(Exception):
    """Base class for errors surfaced to the user as plain text."""


class ReminderInPastError(ReminderError):
    pass


class ReminderNotFoundError(ReminderError):
    pass


def slack_error(exc: SlackApiError) -> str:
    response = getattr(exc, "response", None)
    try:
        return response["error"]
    except (TypeError, KeyError):
        return str(exc)


# ──────────────────────────────────────────────────────────────────────────
# Stores
# ──────────────────────────────────────────────────────────────────────────


class ReminderStore(Protocol):
    async def insert_reminder(self, record: ReminderRecord) -> Optional[ReminderRecord]: ...

    async def get_reminder(self, reminder_id: str) -> Optional[ReminderRecord]: ...

    async def list_reminders(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = "pending",
        delivery: Optional[str] = None,
    ) -> List[ReminderRecord]: ...

    async def claim_reminder(self, reminder_id: str) -> Optional[ReminderRecord]: ...

    async def claim_due_reminders(self, limit: int = 100, delivery: str = "timer") -> List[ReminderRecord]: ...

    async def mark_reminder(self, reminder_id: str, status: str, error: Optional[str] = None) -> bool: ...


class InMemoryReminderStore:
    """Process-local store used when no database is configured.

    Same interface as `db.DatabaseGateway`; contents are lost on restart.
    """

    def __init__(self, clock: Clock = utc_now):
        self.clock = clock
        self._records: Dict[str, ReminderRecord] = {}

    async def insert_reminder(self, record: ReminderRecord) -> Optional[ReminderRecord]:
        self._records[record.reminder_id] = record.model_copy()
        return record

    async def get_reminder(self, reminder_id: str) -> Optional[ReminderRecord]:
        record = self._records.get(reminder_id)
        return record.model_copy() if record else None

    async def list_reminders(self, user_id=None, status="pending", delivery=None) -> List[ReminderRecord]:
        found = [
            r.model_copy()
            for r in self._records.values()
            if (not user_id or r.user_id == user_id)
            and (not status or r.status == status)
            and (not delivery or r.delivery == delivery)
        ]
        return sorted(found, key=lambda r: r.reminder_time)

    async def claim_reminder(self, reminder_id: str) -> Optional[ReminderRecord]:
        record = self._records.get(reminder_id)
        if record is None or record.status != "pending":
            return None
        record.status = "processing"
        return record.model_copy()

    async def claim_due_reminders(self, limit: int = 100, delivery: str = "timer") -> List[ReminderRecord]:
        now = self.clock()
        due = [
            r for r in await self.list_reminders(delivery=delivery)
            if r.reminder_time <= now
        ][:limit]
        claimed = []
        for r in due:
            record = await self.claim_reminder(r.reminder_id)
            if record:
                claimed.append(record)
        return claimed

    async def mark_reminder(self, reminder_id: str, status: str, error: Optional[str] = None) -> bool:
        record = self._records.get(reminder_id)
        if record is None:
            return False
        record.status = status
        record.last_error = error
        return True


# ──────────────────────────────────────────────────────────────────────────
# Message formatting / delivery
# ──────────────────────────────────────────────────────────────────────────


def new_reminder_id() -> str:
    return f"rem_{uuid4().hex[:12]}"


def reminder_text(record: ReminderRecord) -> str:
    return f"🔔 *Reminder for <@{record.user_id}>*: {record.content}"


def reminder_blocks(record: ReminderRecord, tz: Optional[tzinfo] = None) -> List[blocks.Block]:
    when = record.reminder_time.astimezone(tz) if tz else record.reminder_time
    return [
        blocks.section(f"🔔 *Reminder for <@{record.user_id}>*\n\n{record.content}"),
        blocks.context(f"_This reminder was scheduled for {format_display_time(when)}_"),
    ]


async def post_reminder(client: AsyncWebClient, record: ReminderRecord, tz: Optional[tzinfo] = None) -> None:
    """Post the reminder; `SlackApiError` propagates to the caller."""
    await client.chat_postMessage(
        channel=record.channel_id,
        text=reminder_text(record),
        blocks=reminder_blocks(record, tz),
    )


# ──────────────────────────────────────────────────────────────────────────
# Scheduler
# ──────────────────────────────────────────────────────────────────────────


class ReminderScheduler:
    def __init__(
        self,
        client: AsyncWebClient,
        store: ReminderStore,
        delivery: str = "timer",
        clock: Clock = utc_now,
        tz: Optional[tzinfo] = None,
    ):
        if delivery not in ("timer", "slack"):
            raise ValueError(f"unknown reminder delivery {delivery!r}")
        self.client = client
        self.store = store
        self.delivery = delivery
        self.clock = clock
        self.tz = tz
        self._timers: Dict[str, asyncio.Task] = {}

    # -- scheduling ---------------------------------------------------------

    async def schedule(self, user_id: str, channel_id: str, content: str, when: datetime) -> ReminderRecord:
        if when <= self.clock():
            raise ReminderInPastError("Cannot set reminder for a time in the past")

        record = ReminderRecord(
            reminder_id=new_reminder_id(),
            user_id=user_id,
            channel_id=channel_id,
            content=content,
            reminder_time=when,
            delivery=self.delivery,
        )

        if self.delivery == "slack":
            try:
                response = await self.client.chat_scheduleMessage(
                    channel=channel_id,
                    post_at=int(when.timestamp()),
                    text=reminder_text(record),
                    blocks=reminder_blocks(record, self.tz),
                )
            except SlackApiError as exc:
                raise ReminderError(f"Slack refused to schedule it: {slack_error(exc)}") from exc
            record.external_id = response["scheduled_message_id"]
            if await self.store.insert_reminder(record) is None:
                # Slack holds the schedule; we only lose list/delete by id
                _LOGGER.warning("Reminder %s scheduled in Slack but not stored", record.reminder_id)
            return record

        if await self.store.insert_reminder(record) is None:
            raise ReminderError("the reminder could not be saved")
        self._arm(record)
        _LOGGER.info("Reminder %s armed for %s", record.reminder_id, when.isoformat())
        return record

    def _arm(self, record: ReminderRecord) -> None:
        delay = max(0.0, (record.reminder_time - self.clock()).total_seconds())
        previous = self._timers.pop(record.reminder_id, None)
        if previous:
            previous.cancel()
        self._timers[record.reminder_id] = asyncio.create_task(
            self._fire_later(record.reminder_id, delay)
        )

    async def _fire_later(self, reminder_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._timers.pop(reminder_id, None)
        await self.fire(reminder_id)

    async def restore(self) -> int:
        """Re-arm timers for pending reminders left by a previous process."""
        if self.delivery != "timer":
            return 0
        pending = await self.store.list_reminders(status="pending", delivery="timer")
        for record in pending:
            self._arm(record)
        if pending:
            _LOGGER.info("Restored %d pending reminder timers", len(pending))
        return len(pending)

    def pending_timers(self) -> List[str]:
        return list(self._timers)

    async def shutdown(self) -> None:
        timers = list(self._timers.values())
        self._timers.clear()
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

    # -- delivery -----------------------------------------------------------

    async def fire(self, reminder_id: str) -> bool:
        record = await self.store.claim_reminder(reminder_id)
        if record is None:
            _LOGGER.info("Reminder %s already handled, skipping", reminder_id)
            return False
        return await self._deliver(record)

    async def _deliver(self, record: ReminderRecord) -> bool:
        try:
            await post_reminder(self.client, record, self.tz)
        except asyncio.CancelledError:
            # claimed but never posted: hand it back to the next sweep
            await self.store.mark_reminder(record.reminder_id, "pending")
            raise
        except Exception as exc:
            error = slack_error(exc) if isinstance(exc, SlackApiError) else repr(exc)
            _LOGGER.error("Error sending reminder %s: %s", record.reminder_id, error)
            await self.store.mark_reminder(record.reminder_id, "failed", error)
            return False
        await self.store.mark_reminder(record.reminder_id, "sent")
        _LOGGER.info("Reminder sent %s", record.reminder_id)
        return True

    async def dispatch_due(self, limit: int = 100) -> int:
        """Deliver every due timer reminder; returns the number sent.

        Due ``slack`` reminders were posted by Slack itself, so they are only
        marked sent here.
        """
        sent = 0
        for record in await self.store.claim_due_reminders(limit=limit, delivery="timer"):
            if await self._deliver(record):
                sent += 1
        await self.settle_scheduled(limit)
        return sent

    async def settle_scheduled(self, limit: int = 100) -> int:
        """Mark ``slack`` reminders whose post time has passed as sent."""
        settled = await self.store.claim_due_reminders(limit=limit, delivery="slack")
        for record in settled:
            await self.store.mark_reminder(record.reminder_id, "sent")
            _LOGGER.info("Reminder %s delivered by Slack", record.reminder_id)
        return len(settled)

    # -- listing / deletion -------------------------------------------------

    async def list_for_user(self, user_id: str) -> List[ReminderRecord]:
        await self.settle_scheduled()
        return await self.store.list_reminders(user_id=user_id, status="pending")

    async def delete(self, reminder_id: str) -> ReminderRecord:
        record = await self.store.get_reminder(reminder_id)
        if record is None or record.status != "pending":
            raise ReminderNotFoundError(f"reminder `{reminder_id}` doesn't exist or was already deleted")

        if record.delivery == "slack" and record.reminder_time <= self.clock():
            await self.store.mark_reminder(reminder_id, "sent")
            raise ReminderNotFoundError(f"reminder `{reminder_id}` was already sent")

        if record.delivery == "slack" and record.external_id:
            try:
                await self.client.chat_deleteScheduledMessage(
                    channel=record.channel_id,
                    scheduled_message_id=record.external_id,
                )
            except SlackApiError as exc:
                if slack_error(exc) == "invalid_scheduled_message_id":
                    # Slack already posted it (or dropped it)
                    await self.store.mark_reminder(reminder_id, "sent")
                    raise ReminderNotFoundError(f"reminder `{reminder_id}` was already sent") from exc
                raise ReminderError(f"Slack couldn't delete it: {slack_error(exc)}") from exc

        timer = self._timers.pop(reminder_id, None)
        if timer:
            timer.cancel()
        await self.store.mark_reminder(reminder_id, "deleted")
        record.status = "deleted"
        _LOGGER.info("Reminder deleted %s", reminder_id)
        return record
