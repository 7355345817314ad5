"""
Test configuration and fixtures.
Uses a per-test SQLite file so fan-out branches can open their own sessions.
Mocks all outbound HTTP (Discord, webhook receivers).
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DISCORD_BOT_TOKEN", "test-bot-token")

import uuid  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.dialects.postgresql import JSONB  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.ext.compiler import compiles  # noqa: E402

from monitorflow.database import Base, get_db, get_session_factory  # noqa: E402
from monitorflow.models import EventCategory, User, Webhook  # noqa: E402
from monitorflow.utils.signatures import generate_secret  # noqa: E402


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite database, shared by every session in one test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'monitorflow.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make(plan="FREE", discord_id="discord-123", api_key=None):
        user = User(
            email=f"{uuid.uuid4().hex[:8]}@example.com",
            api_key=api_key or f"mf_{uuid.uuid4().hex}",
            plan=plan,
            discord_id=discord_id,
        )
        db.add(user)
        await db.commit()
        return user
    return _make


@pytest.fixture
def make_category(db):
    async def _make(user, name="sale", color=0xFFEB3B, emoji="\U0001f4b0"):
        category = EventCategory(user_id=user.id, name=name, color=color, emoji=emoji)
        db.add(category)
        await db.commit()
        return category
    return _make


@pytest.fixture
def make_webhook(db):
    async def _make(
        user,
        name=None,
        url="https://hooks.example.com/receive",
        event_categories=("sale",),
        status="ACTIVE",
        headers=None,
    ):
        webhook = Webhook(
            user_id=user.id,
            name=name or f"hook-{uuid.uuid4().hex[:6]}",
            url=url,
            event_categories=list(event_categories),
            headers=headers or {},
            secret=generate_secret(),
            status=status,
        )
        db.add(webhook)
        await db.commit()
        return webhook
    return _make


@pytest.fixture
def notifier():
    """Stands in for the Discord client: notify() succeeds unless told otherwise."""
    mock = AsyncMock()
    mock.notify = AsyncMock(return_value={"id": "message-1"})
    return mock


@pytest.fixture
async def client(session_factory, notifier):
    """HTTP client bound to the app with the test database and notifier."""
    from monitorflow.api.events import get_notifier
    from monitorflow.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
