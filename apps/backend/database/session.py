"""
Database Engine & Sessions
==========================
Process-wide async engine and session factory.

The engine is created lazily from settings and disposed on shutdown.
Each request gets its own AsyncSession via get_db_session().
"""

from typing import AsyncIterator, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import Settings, get_settings
from database.models import Base
from exceptions import DatabaseConnectionError
from logging_config import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for_url(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; SQLite connections get foreign key enforcement."""
    engine = create_async_engine(database_url, echo=echo)
    if database_url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Get or create the process-wide engine."""
    global _engine, _session_factory

    if _engine is None:
        settings = settings or get_settings()
        _engine = create_engine_for_url(settings.database_url, echo=settings.database_echo)
        _session_factory = async_sessionmaker(
            _engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine created", driver=_engine.url.drivername)

    return _engine


def get_session_factory() -> async_sessionmaker:
    """Get the session factory bound to the process-wide engine."""
    get_engine()
    return _session_factory


async def get_db_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a request-scoped session."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        await session.close()


async def init_db(settings: Optional[Settings] = None) -> None:
    """
    Create tables, retrying while the database is unreachable.

    Raises:
        DatabaseConnectionError: If every attempt fails
    """
    settings = settings or get_settings()
    engine = get_engine(settings)

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.db_connect_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(OperationalError),
        ):
            with attempt:
                async with engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        logger.error("Database unreachable at startup", error=str(last_error))
        raise DatabaseConnectionError(
            "Failed to initialize database schema",
            url=settings.database_url,
            original_error=last_error,
        ) from last_error

    logger.info("Database schema ready")


async def check_database() -> bool:
    """Run a trivial query; returns False if the database is unreachable."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False


async def dispose_engine() -> None:
    """Dispose the engine and forget it so the next call recreates it."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")

    _engine = None
    _session_factory = None
