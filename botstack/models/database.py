"""
botstack.models.database - Database Configuration

Provides database connection and session management:
- get_engine: Create SQLAlchemy async engine
- get_sessionmaker: Create async session factory
- get_db: Async context manager for database sessions
- init_db: Initialize database (create tables)
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from botstack.models.base import Base
from botstack.settings import get_settings


def get_database_url() -> str:
    """
    Get database URL from settings.

    Defaults to local PostgreSQL if not set.
    """
    return get_settings().database_url


def get_engine(database_url: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create SQLAlchemy async engine.

    Args:
        database_url: Database connection string (uses settings if not provided)
        echo: Whether to echo SQL queries (useful for debugging)

    Returns:
        AsyncEngine for PostgreSQL (asyncpg) or SQLite (aiosqlite)
    """
    url = database_url or get_database_url()

    if url.startswith("sqlite"):
        # SQLite pools do not take size arguments
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=20,
    )


def get_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create async session factory.

    Args:
        engine: SQLAlchemy async engine

    Returns:
        async_sessionmaker for creating database sessions
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
    )


@asynccontextmanager
async def get_db(
    database_url: str | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session (async context manager).

    Usage:
        >>> async with get_db() as db:
        ...     tools = await db.execute(select(Tool))
        ...     await db.commit()

    Args:
        database_url: Database connection string (uses settings if not provided)

    Yields:
        AsyncSession for database operations
    """
    engine = get_engine(database_url)
    sessionmaker = get_sessionmaker(engine)

    async with sessionmaker() as session:
        try:
            yield session
        finally:
            await session.close()
            await engine.dispose()


async def init_db(database_url: str | None = None) -> None:
    """
    Initialize database (create all tables).

    This should only be used in development/testing.
    In production, use Alembic migrations.
    """
    engine = get_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    await engine.dispose()


async def drop_db(database_url: str | None = None) -> None:
    """
    Drop all tables.

    **WARNING:** This will delete all data!
    Only use in development/testing.
    """
    engine = get_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()
