"""Per-process state handed to every handler.

Nothing here is a module-level singleton: each transport (and each worker
thread under the supervisor) builds its own `BotContext`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional, Union
from zoneinfo import ZoneInfo

from app.services.ai import AIGateway
from app.services.reminders import InMemoryReminderStore, ReminderScheduler
from db import DatabaseGateway

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unavailable:
    """A capability that could not be configured, and why."""

    capability: str
    reason: str

    def describe(self) -> str:
        return f"The {self.capability} isn't available right now ({self.reason})."


class InFlightMessages:
    """Best-effort de-duplication of concurrent handling of one Slack event."""

    def __init__(self, release_delay: float = 5.0):
        self.release_delay = release_delay
        self._keys: Dict[str, bool] = {}

    def claim(self, key: Optional[str]) -> bool:
        if not key or key in self._keys:
            return False
        self._keys[key] = True
        return True

    def release(self, key: Optional[str], delay: Optional[float] = None) -> None:
        if not key:
            return
        delay = self.release_delay if delay is None else delay
        if delay <= 0:
            self._keys.pop(key, None)
            return
        asyncio.get_running_loop().call_later(delay, self._keys.pop, key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._keys


@dataclass
class BotContext:
    settings: object
    ai: AIGateway
    database: Union[DatabaseGateway, Unavailable]
    reminders: Optional[ReminderScheduler] = None
    in_flight: InFlightMessages = field(default_factory=InFlightMessages)
    rng: random.Random = field(default_factory=random.Random)
    tz: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    clock: Optional[Callable[[], datetime]] = None

    def now(self) -> datetime:
        return self.clock() if self.clock else datetime.now(self.tz)


def build_database(settings) -> Union[DatabaseGateway, Unavailable]:
    url = settings.DATABASE_URL or settings.DATABASE_PUBLIC_URL
    if not url:
        return Unavailable("database", "DATABASE_URL not set")
    try:
        gateway = DatabaseGateway.from_settings(settings)
        gateway.engine  # missing driver / malformed URL surfaces here, not on first query
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Failed to configure database: %s", exc)
        return Unavailable("database", str(exc))
    return gateway


def build_context(settings, client, reminder_store=None) -> BotContext:
    """Wire gateways and the reminder scheduler around a Slack web client.

    ``reminder_store`` lets two bots in one process share the in-memory store
    when there is no database.
    """
    try:
        tz = ZoneInfo(settings.DEFAULT_TIMEZONE)
    except Exception:  # noqa: BLE001
        _LOGGER.warning("Unknown DEFAULT_TIMEZONE %r, using UTC", settings.DEFAULT_TIMEZONE)
        tz = ZoneInfo("UTC")

    ai = AIGateway.from_settings(settings)
    if ai.client is None:
        _LOGGER.warning("OPENAI_API_KEY not set; AI replies will use fallbacks")

    database = build_database(settings)
    if isinstance(database, Unavailable):
        _LOGGER.warning("%s Reminders will be kept in memory only.", database.describe())
        store = reminder_store or InMemoryReminderStore()
    else:
        store = database

    ctx = BotContext(
        settings=settings,
        ai=ai,
        database=database,
        in_flight=InFlightMessages(settings.IN_FLIGHT_RELEASE_DELAY),
        tz=tz,
    )
    ctx.reminders = ReminderScheduler(
        client,
        store,
        delivery=settings.REMINDER_DELIVERY,
        clock=ctx.now,
        tz=tz,
    )
    return ctx
