"""Database session configuration."""

import os
from collections.abc import AsyncGenerator
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

# Load .env file before accessing environment variables
_env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"
load_dotenv(_env_file)


def get_database_url() -> str:
    """Get the async database URL from environment, falling back to settings."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        from config import get_settings

        url = get_settings().database_url

    # Plain postgres URLs are converted to the async driver
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


@lru_cache
def get_async_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    url = get_database_url()
    if url.startswith("sqlite"):
        return create_async_engine(url)

    from config import get_settings

    settings = get_settings()
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the async engine."""
    return async_sessionmaker(
        bind=get_async_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def get_async_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncGenerator[AsyncSession, None]:
    """Dependency for async database sessions."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_models() -> None:
    """Create any missing tables."""
    from database.models import Base

    async with get_async_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
