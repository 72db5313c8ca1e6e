"""Storefront Database Configuration - Async SQLAlchemy."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from storefront.core.config import settings
from storefront.core.logging import get_logger

logger = get_logger("database")


def _engine_options(database_url: str) -> dict[str, Any]:
    """Connection pool options for the configured backend.

    Pool sizing is configurable via DB_POOL_SIZE, DB_MAX_OVERFLOW,
    DB_POOL_TIMEOUT and DB_POOL_RECYCLE. SQLite (tests, local runs) uses
    SQLAlchemy's own pool and ignores them.
    """
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    # Only echo SQL when debug is explicitly enabled
    echo=settings.debug and settings.log_level == "DEBUG",
    **_engine_options(settings.database_url),
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Base class for models
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (Exception, BaseException):
            # Also roll back on cancellation (asyncio.CancelledError)
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create any missing tables."""
    # Import models so they are registered on Base.metadata
    import storefront.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def check_db_connection() -> bool:
    """Check if the database is reachable."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (OSError, ConnectionError) as e:
        logger.debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        logger.warning(f"Unexpected error checking database connection: {e}")
        return False
