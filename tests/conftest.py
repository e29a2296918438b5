"""Pytest fixtures for testing."""

import os
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "console")

from artifact_core.realtime.hub import get_realtime_hub, reset_realtime_hub  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_dir(project_root: Path) -> Path:
    """Get the config directory."""
    return project_root / "config"


@pytest.fixture(autouse=True)
def hub():
    """Fresh global realtime hub for every test."""
    reset_realtime_hub()
    yield get_realtime_hub()
    reset_realtime_hub()


@pytest.fixture
async def engine():
    """Async in-memory SQLite engine with the full schema.

    StaticPool keeps a single connection, so every session sees the same
    in-memory database.
    """
    from database.models import Base

    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def conversation(db_session):
    """A stored conversation."""
    from database.models import Conversation

    record = Conversation(title="Spring launch")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest.fixture
async def client(session_factory):
    """Async test client with the database dependency overridden."""
    from database.session import get_session_factory
    from main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
