"""
Async PostgreSQL access for the assessment service.

One AsyncEngine per process, created lazily from DATABASE_URL. Reads use
get_connection(); anything that writes uses get_transaction() so the whole
operation commits or rolls back together. Alembic gets a psycopg2 URL for
the same database from get_sync_database_url().
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from .config import get_db_pool_size, is_sql_echo
from .tables import metadata  # noqa: F401 - exported for Alembic

# Hosting providers still hand out the legacy postgres:// scheme
_PLAIN_SCHEMES = ("postgresql://", "postgres://")
_ASYNC_SCHEME = "postgresql+asyncpg://"

_engine: AsyncEngine | None = None


def _split_scheme(database_url: str) -> tuple[str, str] | None:
    """Return (scheme, rest) for a URL this service can connect to."""
    for scheme in (_ASYNC_SCHEME, *_PLAIN_SCHEMES):
        if database_url.startswith(scheme):
            return scheme, database_url[len(scheme):]
    return None


def _get_database_url() -> str:
    """DATABASE_URL rewritten for the asyncpg driver."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable must be set.")

    parts = _split_scheme(database_url)
    if parts is None:
        # Some other SQLAlchemy URL; hand it over unchanged
        return database_url
    return _ASYNC_SCHEME + parts[1]


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine singleton."""
    global _engine
    if _engine is None:
        pool_size = get_db_pool_size()
        _engine = create_async_engine(
            _get_database_url(),
            echo=is_sql_echo(),
            pool_size=pool_size,
            max_overflow=pool_size,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )
    return _engine


@asynccontextmanager
async def get_connection() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection for read-only work.

    Usage:
        async with get_connection() as conn:
            attempts = await list_attempts(conn, quiz_id=1, user_id=7)
    """
    async with get_engine().connect() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncGenerator[AsyncConnection, None]:
    """
    Connection inside a transaction that commits when the block exits cleanly.

    Every mutating operation in the service runs inside one of these, so a
    failed precondition or a lost race leaves no partial rows behind.

    Usage:
        async with get_transaction() as conn:
            attempt = await start_attempt(conn, quiz_id=1, user_id=7)
    """
    async with get_engine().begin() as conn:
        yield conn


async def close_engine() -> None:
    """Dispose of the pool. Called on shutdown and between DB tests."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def is_configured() -> bool:
    return bool(os.environ.get("DATABASE_URL"))


def get_sync_database_url() -> str:
    """DATABASE_URL rewritten for psycopg2, which Alembic migrations run on."""
    parts = _split_scheme(os.environ.get("DATABASE_URL", ""))
    if parts is None:
        raise ValueError("DATABASE_URL must be a PostgreSQL URL for migrations")
    return "postgresql://" + parts[1]
