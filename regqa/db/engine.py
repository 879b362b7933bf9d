# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# Async SQLAlchemy engine for the SQL-backed knowledge store. The retrieval
# pipeline only reads, so there is no commit policy to speak of: sessions are
# opened per store call and closed immediately.
#
# DESIGN DECISION: Lazy initialization.
# The default deployment runs the in-memory store, which needs neither a
# database nor the asyncpg driver. Creating the engine on first use keeps
# imports free of driver requirements.
# =============================================================================

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from regqa.config import settings

_async_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Lazily create and cache the async SQLAlchemy engine."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(
            database_url or settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _async_engine


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Lazily create and cache the async session factory."""
    global _async_session_factory
    if _async_session_factory is None:
        # expire_on_commit=False: ORM rows stay readable after the session
        # closes, which is when the store converts them to entries.
        _async_session_factory = async_sessionmaker(
            bind=get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _async_session_factory
