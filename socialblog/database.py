"""
Async SQLAlchemy engine + session factory.

Production runs against TiDB (wire-compatible with MySQL 5.7) through the
aiomysql driver; tests point DATABASE_URL at aiosqlite.

The engine is process-wide and created lazily on first use. Concurrent first
callers wait on the same lock, so only one engine is ever built.
"""
import asyncio
import logging
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from socialblog.config import settings
from socialblog.exceptions import StorageConnectionError

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None
_init_lock: Optional[asyncio.Lock] = None


class Base(DeclarativeBase):
    pass


def _build_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # One shared connection, otherwise every checkout sees its own
        # in-memory database.
        return create_async_engine(
            url,
            poolclass=StaticPool,
            echo=settings.db_echo,
        )
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        echo=settings.db_echo,
    )


def _get_lock() -> asyncio.Lock:
    global _init_lock
    if _init_lock is None:
        _init_lock = asyncio.Lock()
    return _init_lock


async def get_engine() -> AsyncEngine:
    """Return the shared engine, connecting on first use."""
    global _engine, _session_factory
    if _engine is not None:
        return _engine

    async with _get_lock():
        if _engine is not None:
            return _engine

        url = settings.sqlalchemy_url
        engine = _build_engine(url)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            await engine.dispose()
            logger.error("Failed to connect to database: %s", exc)
            raise StorageConnectionError(
                "Failed to connect to database", original=exc
            ) from exc

        _engine = engine
        _session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info(
            "Database engine initialised (%s)",
            engine.url.render_as_string(hide_password=True),
        )
        return _engine


async def get_session_factory() -> async_sessionmaker[AsyncSession]:
    await get_engine()
    assert _session_factory is not None
    return _session_factory


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    from socialblog import models  # noqa: F401  (registers tables on Base)

    engine = await get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def dispose_engine() -> None:
    global _engine, _session_factory, _init_lock
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _init_lock = None


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency that yields an async DB session."""
    factory = await get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
