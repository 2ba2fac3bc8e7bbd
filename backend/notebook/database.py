"""
Notebook Backend: Database Session Management
==============================================

What:  Async SQLAlchemy engine factory, declarative base and session dependency.
Why:   Centralizes all database connection logic in one place.
How:   create_app() builds the engine from Settings and keeps the engine and
       session factory on app.state; get_db_session() opens one session per
       request, committing on success and rolling back on error.

Connection Pooling Strategy (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite URLs (tests, local experiments) skip the pool arguments because
    aiosqlite's static/null pools reject them.
"""

from typing import AsyncGenerator, Tuple

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from notebook.config import Settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Registers every model with a single metadata object (used by Alembic).
    """
    pass


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database URL."""
    kwargs = {"echo": settings.log_level == "DEBUG"}
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: response models read attributes after commit
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def init_database(settings: Settings) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    engine = create_engine_from_settings(settings)
    return engine, create_session_factory(engine)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory stored on app.state
        2. Yields it to the route handler
        3. On success: commits whatever the services left pending
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session (returns connection to pool)
    """
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def dispose_engine(engine: AsyncEngine) -> None:
    """Gracefully closes all connections in the pool (application shutdown)."""
    await engine.dispose()
