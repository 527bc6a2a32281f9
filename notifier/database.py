"""
SQLAlchemy async database client for the event notifier.

Provides async connection management using SQLAlchemy Core with asyncpg
(or aiosqlite for local development and tests).
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .enums import message_status_enum
from .tables import metadata  # noqa: F401 - exported for Alembic

# Module-level engine (created on first use)
_engine: AsyncEngine | None = None


def _get_database_url() -> str:
    """
    Construct async database URL from environment variables.

    For asyncpg, postgresql://... becomes postgresql+asyncpg://...
    SQLite URLs must already name the aiosqlite driver.
    """
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set.")

    # Convert postgresql:// to postgresql+asyncpg://
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    return database_url


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine singleton."""
    global _engine
    if _engine is None:
        database_url = _get_database_url()
        engine_kwargs = {"echo": os.environ.get("SQL_ECHO", "").lower() == "true"}
        if not database_url.startswith("sqlite"):
            # Connection pool settings
            engine_kwargs.update(
                pool_size=5,
                max_overflow=10,
                pool_timeout=30,
                pool_recycle=1800,  # Recycle connections every 30 minutes
            )
        _engine = create_async_engine(database_url, **engine_kwargs)
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection from the pool.

    Usage:
        async with get_connection() as conn:
            message = await get_message(conn, message_id)
    """
    engine = get_engine()
    async with engine.connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection with automatic transaction management.
    Commits on success, rolls back on exception.

    Usage:
        async with get_transaction() as conn:
            await mark_sent(conn, message_id, sent_at, recipients)
            # Auto-commits if no exception
    """
    engine = get_engine()
    async with engine.begin() as conn:
        yield conn


async def create_schema() -> None:
    """Create all tables directly (development and tests; production uses Alembic)."""
    engine = get_engine()
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            await conn.run_sync(
                lambda sync_conn: message_status_enum.create(sync_conn, checkfirst=True)
            )
        await conn.run_sync(metadata.create_all)


async def close_engine() -> None:
    """Close the engine and all connections. Call on shutdown."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_sync_database_url() -> str:
    """
    Get synchronous database URL for Alembic migrations.

    Alembic runs migrations synchronously, so we need a psycopg2 URL.
    """
    database_url = os.environ.get("DATABASE_URL", "")

    # Use psycopg2 driver for sync operations
    if "postgresql+asyncpg://" in database_url:
        return database_url.replace("postgresql+asyncpg://", "postgresql://")
    if database_url.startswith("postgresql://"):
        return database_url

    raise ValueError("DATABASE_URL must be set for migrations")
