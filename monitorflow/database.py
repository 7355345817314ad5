"""
Async SQLAlchemy engine, sessions and dialect helpers.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests.
Sessions are created with expire_on_commit=False so ORM objects stay readable
after the ingestion pipeline's intermediate commits.
"""
import logging
from typing import AsyncGenerator
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

_engine = None
_session_factory = None


class Base(DeclarativeBase):
    pass


def _engine_options(settings) -> dict:
    options = {"echo": settings.app_env == "development"}
    # SQLite pools are fixed-size; pool sizing only applies to server databases
    if make_url(settings.database_url).get_backend_name() != "sqlite":
        options["pool_size"] = settings.database_pool_size
        options["max_overflow"] = settings.database_max_overflow
        options["pool_pre_ping"] = True
    return options


def _get_engine():
    global _engine
    if _engine is None:
        from monitorflow.config import get_settings
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    return _engine


def get_session_factory() -> async_sessionmaker:
    """Shared session factory. Also a FastAPI dependency: fan-out branches open their own sessions."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            _get_engine(), class_=AsyncSession, expire_on_commit=False
        )
    return _session_factory


def async_session_factory() -> AsyncSession:
    """New session outside a request (scripts, maintenance jobs)."""
    return get_session_factory()()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session: commits on success, rolls back and re-raises on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.debug("Request failed, rolling back session: %s", str(e))
            await session.rollback()
            raise


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def upsert(session: AsyncSession, model):
    """
    INSERT for `model` that supports on_conflict_do_update() on the session's dialect.
    Counters (rate limits, quotas) rely on it for single-statement atomic increments.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Atomic upsert not supported for dialect {dialect!r}")
