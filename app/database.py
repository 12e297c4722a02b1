"""
Database engine and session management.

The database is optional: when DATABASE_URL is empty or the server cannot be
reached at startup, init_database returns None and the delivery subsystem
keeps its records in memory only.
"""
import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.models.base import Base
# Import all models to register them with Base
from app.models import delivery, send_job  # noqa: F401

logger = structlog.get_logger()


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
    )


async def init_database(database_url: str) -> async_sessionmaker | None:
    """
    Connect to the database and create missing tables.

    Returns:
        Session factory, or None if the database is not configured or unreachable
    """
    if not database_url:
        logger.warning("database_disabled", reason="DATABASE_URL not set")
        return None

    engine = create_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error("database_connection_failed", error=str(e))
        logger.warning("database_degraded", detail="continuing without database features")
        await engine.dispose()
        return None

    logger.info("database_connected")
    return async_sessionmaker(engine, expire_on_commit=False)


async def close_database(session_factory: async_sessionmaker | None) -> None:
    """Dispose the engine behind a session factory."""
    if session_factory is None:
        return
    engine = session_factory.kw.get("bind")
    if engine is not None:
        await engine.dispose()
        logger.info("database_disconnected")
