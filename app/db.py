"""
Database configuration with SQLAlchemy 2.0 async support.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def create_engine_for(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite gets foreign keys switched on."""
    if database_url.startswith("sqlite"):
        if database_url.endswith("://") or ":memory:" in database_url:
            # In-memory databases live on a single shared connection
            engine = create_async_engine(database_url, echo=echo, poolclass=StaticPool)
        else:
            engine = create_async_engine(database_url, echo=echo)

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_sqlite_fks(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_async_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
    )


# Create async engine
engine = create_engine_for(settings.database_url, echo=settings.debug)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions (for use outside of FastAPI)."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(max_retries: int = 10, retry_delay: float = 5) -> None:
    """Create tables if needed, retrying while the database comes up."""
    # Import all models to ensure they're registered
    from app.models import device_token, push_subscription, user  # noqa: F401

    for attempt in range(max_retries):
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables initialized")
            return
        except Exception as e:
            if attempt < max_retries - 1:
                logger.warning(
                    "Database connection attempt %d/%d failed: %s; retrying in %ss",
                    attempt + 1, max_retries, e, retry_delay,
                )
                await asyncio.sleep(retry_delay)
            else:
                logger.error("Database connection failed after %d attempts", max_retries)
                raise


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
