import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncContextManager, AsyncGenerator, Callable, Optional

from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ..domain.errors import TransientStoreError
from ..models.base import Base

logger = logging.getLogger(__name__)

# Anything that can be entered with `async with factory() as session`
SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]

# Global variables for database connection
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from settings."""
    from .config import get_settings

    return get_settings().database_url


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine; SQLite gets NullPool and its data dir created."""
    if database_url.startswith("sqlite") and ":///" in database_url:
        db_path = database_url.split(":///", 1)[1]
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    return create_async_engine(
        database_url,
        echo=False,  # Set to True for SQL debugging
        poolclass=NullPool if "sqlite" in database_url else None,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_database(database_url: Optional[str] = None) -> None:
    """Initialize database connection and create tables"""
    global _engine, _session_factory

    database_url = database_url or get_database_url()
    logger.info(f"Initializing database: {database_url.split('@')[-1]}")

    _engine = create_engine_for(database_url)
    _session_factory = create_session_factory(_engine)

    await create_tables(_engine)
    logger.info("Database tables created/verified")


async def close_database() -> None:
    """Close database connection"""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        logger.info("Database connection closed")
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session context manager"""
    if not _session_factory:
        await init_database()

    async with _session_factory() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.debug(f"Database session rolled back: {e}")
            raise


@asynccontextmanager
async def session_scope(
    factory: Optional[SessionFactory] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session and translate connectivity failures to TransientStoreError.

    Domain errors raised inside the block propagate unchanged; the
    uncommitted transaction is discarded when the session closes.
    """
    factory = factory or get_db_session
    try:
        async with factory() as session:
            yield session
    except (OperationalError, InterfaceError) as e:
        logger.warning(f"Store unavailable: {type(e).__name__}: {e}")
        raise TransientStoreError(str(e.orig) if e.orig else str(e)) from e


async def health_check(factory: Optional[SessionFactory] = None) -> bool:
    """Check if database is accessible"""
    try:
        async with session_scope(factory) as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
    except Exception as e:
        logger.error(f"Database health check failed: {e}", exc_info=True)
        return False
