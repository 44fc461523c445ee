"""
Database connection management.
Handles async SQLAlchemy engine creation for the pgmq driver.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from pgmq_consumer.config import get_settings

logger = logging.getLogger(__name__)

# Global engine instance
_engine: AsyncEngine | None = None


def create_engine(database_url: str | None = None, pooled: bool = True) -> AsyncEngine:
    """
    Create a new async engine.

    Args:
        database_url: Connection URL. Defaults to the database_url setting.
        pooled: Use a connection pool sized from settings; NullPool otherwise
            (one connection per call, suited to tests and one-shot runs).

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    settings = get_settings()
    url = database_url or settings.database_url

    if not pooled:
        return create_async_engine(url, poolclass=NullPool, echo=False)

    return create_async_engine(
        url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.log_level == "DEBUG",
        pool_pre_ping=True,
    )


def get_engine() -> AsyncEngine:
    """
    Get or create the shared async database engine.

    Returns:
        AsyncEngine: The SQLAlchemy async engine instance.
    """
    global _engine
    if _engine is None:
        _engine = create_engine()
        logger.info("Database engine created")
    return _engine


async def close_engine() -> None:
    """
    Dispose of the shared engine.
    Should be called on process shutdown.
    """
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        logger.info("Database engine closed")
