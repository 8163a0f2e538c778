"""Async SQLAlchemy engine, declarative base, and session helpers.

Provides:
- Base: Declarative base for all rollcall tables
- get_session(): Session factory yielding AsyncSession instances
- transaction_scope(): Acquire a session, run one transaction, and
  guarantee commit-or-rollback plus release on every exit path
- init_db() / close_db(): Table creation and engine disposal

Tenant isolation is row-level: every table carries an organization_id
column and every repository query filters on it.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Callable
from contextlib import aclosing, asynccontextmanager

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.rollcall.config import get_settings

SessionFactory = Callable[..., AsyncGenerator[AsyncSession, None]]

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
            echo=False,
        )
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "pk": "pk_%(table_name)s",
    }
)


class Base(DeclarativeBase):
    """Base class for rollcall models."""

    metadata = metadata


# ── Sessions ────────────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the shared engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@asynccontextmanager
async def transaction_scope(
    session_factory: SessionFactory = get_session,
) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block inside a single database transaction.

    The transaction commits when the block exits normally and rolls back
    when it raises; the exception is re-raised unchanged. The session is
    closed in both cases.

    Args:
        session_factory: Async generator function yielding AsyncSession
            instances (defaults to get_session).

    Yields:
        AsyncSession with an open transaction.
    """
    async with aclosing(session_factory()) as sessions:
        session = await anext(sessions)
        async with session.begin():
            yield session


# ── Database Initialization ─────────────────────────────────────────────────


async def init_db() -> None:
    """Create all rollcall tables if they don't exist."""
    # Imported for side effects: registers the models on Base.metadata
    from src.rollcall.selection import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
