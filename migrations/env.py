"""
Alembic environment file – async-ready (SQLAlchemy ≥2.0)

Reads DATABASE_URL from the environment (or alembic.ini fallback),
imports Base from *db/db.py*, and supports both offline (DDL script
generation) and online (direct DB) modes. The issue-tracker tables are
owned by another system and never migrated from here.
"""

from __future__ import annotations

import os
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine

# ---------------------------------------------------------------------
# 1. Logging
# ---------------------------------------------------------------------
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# ---------------------------------------------------------------------
# 2. Model metadata
# ---------------------------------------------------------------------
from db.db import Base, build_url  # noqa: E402
target_metadata = Base.metadata

MANAGED_TABLES = {"roadmaps", "reminders"}


def _include_object(obj, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in MANAGED_TABLES
    return True

# ---------------------------------------------------------------------
# 3. Database URL helper
# ---------------------------------------------------------------------
def _database_url() -> str:
    """Determine the connection string Alembic should use."""
    url = (
        os.getenv("DATABASE_URL")
        or os.getenv("DATABASE_PUBLIC_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "DATABASE_URL not set and sqlalchemy.url missing from alembic.ini"
        )
    return build_url(url)

# ---------------------------------------------------------------------
# 4. Offline migrations (generate SQL only)
# ---------------------------------------------------------------------
def run_migrations_offline() -> None:
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        include_object=_include_object,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()

# ---------------------------------------------------------------------
# 5. Online migrations (run against DB) – async
# ---------------------------------------------------------------------
def _make_async_engine() -> AsyncEngine:
    return create_async_engine(_database_url(), poolclass=pool.NullPool)

async def run_migrations_online() -> None:
    engine = _make_async_engine()

    async with engine.begin() as conn:
        await conn.run_sync(
            lambda sync_conn: context.configure(
                connection=sync_conn,
                target_metadata=target_metadata,
                include_object=_include_object,
            )
        )
        await conn.run_sync(lambda _: context.run_migrations())

    await engine.dispose()

# ---------------------------------------------------------------------
# 6. Entrypoint
# ---------------------------------------------------------------------
if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
