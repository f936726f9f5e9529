"""Ledger database engine and sessions.

One process-wide asyncpg engine backs every request. Sessions handed to
routes carry no request-level transaction: ``SqlLedgerStore`` commits each
write on its own so an approval keeps whatever stages already succeeded.
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine as sqlalchemy_create_async_engine

from approvals.core.config import DatabaseConfig, get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_async_engine(config: DatabaseConfig) -> AsyncEngine:
    """Build the ledger engine; connections run in UTC."""
    engine = sqlalchemy_create_async_engine(
        config.async_url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args={"server_settings": {"timezone": "UTC"}},
    )
    logger.info(
        "Ledger database engine created",
        extra={"host": config.host, "port": config.port, "database": config.name},
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded rows are mapped into pydantic models right away, so nothing
    # needs refreshing after a commit.
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(get_settings().database)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def reset_engine() -> None:
    """Dispose the pooled connections; the next caller builds a fresh engine."""
    global _engine, _session_factory

    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()
        logger.info("Ledger database engine disposed")


async def get_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency yielding a ledger session.

    Commits belong to the store, so this only opens the session and closes
    it (returning the connection to the pool) when the request ends.
    """
    async with get_session_factory()() as session:
        yield session


async def check_database(engine: AsyncEngine | None = None) -> bool:
    """Return True when the ledger database answers a trivial query."""
    try:
        async with (engine or get_engine()).connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Ledger database unreachable", extra={"error": str(e)})
        return False
    return True
