"""Async engine and session factory for the workflow stores.

Nothing here is global: callers create an engine from a URL (or
settings.DATABASE_URL), hand its session factory to the SQL stores and
dispose of it when done.
"""

from typing import Any, Dict, Optional

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

logger = structlog.get_logger(__name__)


def _engine_options(database_url: str) -> Dict[str, Any]:
    settings = get_settings()
    options: Dict[str, Any] = {"echo": settings.SQLALCHEMY_ECHO}
    # SQLite uses a static/null pool; sizing options would be rejected.
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_pre_ping=True,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return options


def create_db_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine.

    Args:
        database_url: Overrides settings.DATABASE_URL when given.
    """
    url = database_url or get_settings().DATABASE_URL
    return create_async_engine(url, **_engine_options(url))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory used by the SQL stores; one session per store call."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the workflow tables if they do not exist yet."""
    from db.base import Base
    import db.models  # noqa: F401 registers the tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Workflow tables ready", tables=sorted(Base.metadata.tables))


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
