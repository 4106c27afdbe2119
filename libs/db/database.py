from __future__ import annotations

"""Database setup for SQLAlchemy with async psycopg driver."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Callable

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.schema import CreateColumn

from libs.core.settings import get_settings

settings = get_settings()
DATABASE_URL = settings.postgres_uri

SessionScope = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class Base(DeclarativeBase):
    """Base class for all ORM models."""


# Create async engine with resilient pool settings to survive Postgres restarts
# - pool_pre_ping: validate connections before using
# - pool_recycle: proactively recycle connections to avoid server-side timeouts
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=False,
    pool_pre_ping=True,
    pool_recycle=1800,
)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


def session_scope(factory: async_sessionmaker[AsyncSession]) -> SessionScope:
    """Build a ``get_session``-style transactional scope over ``factory``."""

    @asynccontextmanager
    async def _scope() -> AsyncIterator[AsyncSession]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _scope


# Provide a transactional scope around a series of operations.
get_session = session_scope(SessionLocal)


def _ensure_database_exists(target: AsyncEngine) -> None:
    """Create the target Postgres database if it is missing (best effort)."""
    url = make_url(target.url.render_as_string(hide_password=False))
    if not url.drivername.startswith("postgresql"):
        return
    logger = logging.getLogger(__name__)
    try:
        maint_engine = create_engine(url.set(database="postgres"))
        with maint_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname=:db"),
                {"db": url.database},
            ).scalar()
            if exists != 1:
                # CREATE DATABASE must run outside a transaction block
                conn.execution_options(isolation_level="AUTOCOMMIT").execute(
                    text(f'CREATE DATABASE "{url.database}"')
                )
                logger.info("Created missing database '%s'", url.database)
        maint_engine.dispose()
    except SQLAlchemyError as exc:  # pragma: no cover - best effort
        logger.warning("Could not verify database '%s': %s", url.database, exc)


async def init_db(
    target: AsyncEngine | None = None, max_attempts: int = 5, delay: float = 5
) -> None:
    """Create tables and add missing columns if necessary.

    Attempts to connect to the database multiple times with a delay
    between attempts. Only after a successful connection will the tables be
    created. If all attempts fail, the last exception is propagated.
    """

    # Import models to ensure Base.metadata is populated even when this module
    # is imported standalone (e.g., in db-init one-off container).
    from . import models  # noqa: F401

    target = target or engine

    def sync_init(sync_conn):  # type: ignore[no-untyped-def]
        Base.metadata.create_all(sync_conn)
        inspector = inspect(sync_conn)
        for table in Base.metadata.tables.values():
            existing = {col["name"] for col in inspector.get_columns(table.name)}
            for column in table.columns:
                if column.name not in existing:
                    col_ddl = CreateColumn(column).compile(dialect=sync_conn.dialect)
                    sync_conn.execute(
                        text(f"ALTER TABLE {table.name} ADD COLUMN {col_ddl}")
                    )

    logger = logging.getLogger(__name__)
    last_exc: SQLAlchemyError | None = None

    await asyncio.to_thread(_ensure_database_exists, target)

    for attempt in range(1, max_attempts + 1):
        try:
            async with target.begin() as conn:
                await conn.run_sync(sync_init)
            logger.info("DB schema ensured (attempt %d)", attempt)
            return
        except SQLAlchemyError as exc:
            last_exc = exc
            if attempt == max_attempts:
                break
            logger.warning(
                "DB init attempt %d failed: %s. Retrying in %ss", attempt, exc, delay
            )
            await asyncio.sleep(delay)

    logger.error("DB init failed after %d attempts", max_attempts)
    if last_exc is not None:
        raise last_exc


__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "SessionScope",
    "session_scope",
    "get_session",
    "init_db",
]
