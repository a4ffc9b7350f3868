"""
Async DB gateway for roadmaps, reminders and the read-only issue tracker.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.

Every public operation logs and returns ``None`` / an empty list on failure;
callers treat absence as "no data".
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator

from sqlalchemy import (
    select, update, func, or_, JSON, DateTime, ForeignKey, String, Text
)
from sqlalchemy.orm import (
    DeclarativeBase, Mapped, mapped_column
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
)

from app.types.parser_contract import IssueFinding, ReminderRecord

_LOGGER = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────
# 1. Declarative metadata
# ──────────────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    pass

# ──────────────────────────────────────────────────────────────────────
# 2. ORM models
# ──────────────────────────────────────────────────────────────────────

class Roadmap(Base):
    __tablename__ = "roadmaps"

    project_id: Mapped[str] = mapped_column(String, primary_key=True)
    data:       Mapped[dict[str, Any]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Reminder(Base):
    __tablename__ = "reminders"

    reminder_id:   Mapped[str] = mapped_column(String, primary_key=True)
    user_id:       Mapped[str] = mapped_column(String)
    channel_id:    Mapped[str] = mapped_column(String)
    content:       Mapped[str] = mapped_column(Text)
    reminder_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    delivery:      Mapped[str] = mapped_column(String, default="timer")
    external_id:   Mapped[str | None] = mapped_column(String, nullable=True)
    status:        Mapped[str] = mapped_column(String, default="pending")
    last_error:    Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at:    Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at:    Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# Pre-existing issue-tracking schema, queried read-only by /audit issues

class Workspace(Base):
    __tablename__ = "workspaces"

    workspace_id: Mapped[str] = mapped_column("id", String, primary_key=True)
    name:         Mapped[str] = mapped_column(String)


class Pillar(Base):
    __tablename__ = "pillars"

    pillar_id:    Mapped[str] = mapped_column("id", String, primary_key=True)
    name:         Mapped[str] = mapped_column(String)
    workspace_id: Mapped[str | None] = mapped_column(ForeignKey("workspaces.id"), nullable=True)


class Theme(Base):
    __tablename__ = "themes"

    theme_id:  Mapped[str] = mapped_column("id", String, primary_key=True)
    name:      Mapped[str] = mapped_column(String)
    pillar_id: Mapped[str | None] = mapped_column(ForeignKey("pillars.id"), nullable=True)


class Issue(Base):
    __tablename__ = "issues"

    issue_id:     Mapped[str] = mapped_column("id", String, primary_key=True)
    title:        Mapped[str] = mapped_column(String)
    description:  Mapped[str | None] = mapped_column(Text, nullable=True)
    theme_id:     Mapped[str | None] = mapped_column(ForeignKey("themes.id"), nullable=True)
    workspace_id: Mapped[str | None] = mapped_column(ForeignKey("workspaces.id"), nullable=True)


def _as_dict(obj: Base) -> dict[str, Any]:
    return {attr.key: getattr(obj, attr.key) for attr in obj.__mapper__.column_attrs}


def build_url(url: str | None) -> str:
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url:
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

# ──────────────────────────────────────────────────────────────────────
# 3. Gateway
# ──────────────────────────────────────────────────────────────────────

class DatabaseGateway:
    """Connection pool plus the narrow queries the bot needs.

    The engine is built lazily and disposed when a health check fails; the
    next query builds a fresh one.
    """

    def __init__(self, url: str, ping_interval: float = 60.0, pool_size: int = 5, max_overflow: int = 5):
        self.url = build_url(url)
        self.ping_interval = ping_interval
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.status = "initializing"
        self.last_ping = 0.0
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings) -> "DatabaseGateway":
        return cls(
            settings.DATABASE_URL or settings.DATABASE_PUBLIC_URL,
            ping_interval=settings.DB_PING_INTERVAL,
        )

    # 3.1 Engine / session ---------------------------------------------
    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            kwargs: dict[str, Any] = {"pool_pre_ping": True}
            if self.url.startswith("postgresql"):
                kwargs.update(pool_size=self.pool_size, max_overflow=self.max_overflow)
            self._engine = create_async_engine(self.url, **kwargs)
            self._session_maker = None
        return self._engine

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(self.engine, expire_on_commit=False)
        return self._session_maker

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        await self.ensure_alive()
        async with self.session_maker() as s:
            yield s

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(select(1))
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Database ping failed, connection may be down: %s", exc)
            self.status = "error"
            await self.dispose()
            return False
        self.status = "connected"
        self.last_ping = time.monotonic()
        return True

    async def ensure_alive(self) -> None:
        """Ping at most once per ``ping_interval`` seconds."""
        if time.monotonic() - self.last_ping > self.ping_interval:
            await self.ping()

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    # 3.2 Roadmaps -----------------------------------------------------
    async def get_roadmap(self, project_id: str) -> dict | None:
        try:
            async with self.session() as s:
                row = await s.get(Roadmap, project_id)
                return _as_dict(row) if row else None
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error fetching roadmap %s: %s", project_id, exc)
            return None

    async def list_roadmaps(self) -> list[dict]:
        name = Roadmap.data["name"].as_string()
        try:
            async with self.session() as s:
                res = await s.execute(
                    select(Roadmap.project_id, name.label("name")).distinct().order_by(name)
                )
                return [{"project_id": r.project_id, "name": r.name} for r in res]
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error listing roadmap projects: %s", exc)
            return []

    async def upsert_roadmap(self, project_id: str, data: dict[str, Any]) -> dict | None:
        try:
            async with self.session() as s:
                existing = await s.get(Roadmap, project_id)
                if existing is not None:
                    existing.data = data
                    existing.updated_at = func.now()
                else:
                    existing = Roadmap(project_id=project_id, data=data)
                    s.add(existing)
                await s.commit()
                await s.refresh(existing)
                return _as_dict(existing)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error updating roadmap %s: %s", project_id, exc)
            return None

    # 3.3 Issue audit --------------------------------------------------
    async def audit_issues(self, limit: int = 200) -> list[IssueFinding]:
        """Issues missing a description or a theme, with their hierarchy."""
        blank_description = or_(Issue.description.is_(None), func.trim(Issue.description) == "")
        stmt = (
            select(
                Issue.issue_id,
                Issue.title,
                Issue.description,
                Issue.theme_id,
                Theme.name.label("theme"),
                Pillar.name.label("pillar"),
                Workspace.name.label("workspace"),
            )
            .outerjoin(Theme, Issue.theme_id == Theme.theme_id)
            .outerjoin(Pillar, Theme.pillar_id == Pillar.pillar_id)
            .outerjoin(Workspace, Issue.workspace_id == Workspace.workspace_id)
            .where(or_(blank_description, Issue.theme_id.is_(None)))
            .order_by(Workspace.name, Issue.title)
            .limit(limit)
        )
        try:
            async with self.session() as s:
                res = await s.execute(stmt)
                findings = []
                for r in res:
                    missing = []
                    if not (r.description or "").strip():
                        missing.append("description")
                    if r.theme_id is None:
                        missing.append("theme")
                    findings.append(IssueFinding(
                        issue_id=str(r.issue_id),
                        title=r.title or "(untitled)",
                        workspace=r.workspace,
                        pillar=r.pillar,
                        theme=r.theme,
                        missing=missing,
                    ))
                return findings
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error running issue audit: %s", exc)
            return []

    # 3.4 Reminders ----------------------------------------------------
    async def insert_reminder(self, record: ReminderRecord) -> ReminderRecord | None:
        try:
            async with self.session() as s:
                s.add(Reminder(**record.model_dump(exclude={"created_at"})))
                await s.commit()
            return record
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error storing reminder %s: %s", record.reminder_id, exc)
            return None

    async def get_reminder(self, reminder_id: str) -> ReminderRecord | None:
        try:
            async with self.session() as s:
                row = await s.get(Reminder, reminder_id)
                return ReminderRecord.model_validate(row) if row else None
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error fetching reminder %s: %s", reminder_id, exc)
            return None

    async def list_reminders(
        self,
        user_id: str | None = None,
        status: str | None = "pending",
        delivery: str | None = None,
    ) -> list[ReminderRecord]:
        stmt = select(Reminder)
        if user_id:
            stmt = stmt.where(Reminder.user_id == user_id)
        if status:
            stmt = stmt.where(Reminder.status == status)
        if delivery:
            stmt = stmt.where(Reminder.delivery == delivery)
        stmt = stmt.order_by(Reminder.reminder_time)
        try:
            async with self.session() as s:
                res = await s.execute(stmt)
                return [ReminderRecord.model_validate(r) for r in res.scalars()]
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error listing reminders: %s", exc)
            return []

    async def claim_reminder(self, reminder_id: str) -> ReminderRecord | None:
        """Move one pending reminder to processing; ``None`` if someone else won."""
        stmt = (
            update(Reminder)
            .where(Reminder.reminder_id == reminder_id, Reminder.status == "pending")
            .values(status="processing", updated_at=func.now())
            .returning(Reminder)
        )
        try:
            async with self.session() as s:
                res = await s.execute(stmt)
                row = res.scalar_one_or_none()
                await s.commit()
                return ReminderRecord.model_validate(row) if row else None
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error claiming reminder %s: %s", reminder_id, exc)
            return None

    async def claim_due_reminders(self, limit: int = 100, delivery: str = "timer") -> list[ReminderRecord]:
        due = (
            select(Reminder.reminder_id)
            .where(
                Reminder.status == "pending",
                Reminder.delivery == delivery,
                Reminder.reminder_time <= func.now(),
            )
            .order_by(Reminder.reminder_time)
            .limit(limit)
            .scalar_subquery()
        )
        stmt = (
            update(Reminder)
            .where(Reminder.reminder_id.in_(due), Reminder.status == "pending")
            .values(status="processing", updated_at=func.now())
            .returning(Reminder)
        )
        try:
            async with self.session() as s:
                res = await s.execute(stmt)
                rows = res.scalars().all()
                await s.commit()
                return [ReminderRecord.model_validate(r) for r in rows]
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error claiming due reminders: %s", exc)
            return []

    async def mark_reminder(self, reminder_id: str, status: str, error: str | None = None) -> bool:
        try:
            async with self.session() as s:
                await s.execute(
                    update(Reminder)
                    .where(Reminder.reminder_id == reminder_id)
                    .values(status=status, last_error=error, updated_at=func.now())
                )
                await s.commit()
            return True
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error marking reminder %s as %s: %s", reminder_id, status, exc)
            return False
