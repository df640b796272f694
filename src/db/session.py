from __future__ import annotations

from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.settings import DATABASE_URL


def create_engine_for(url: str, **overrides: Any) -> AsyncEngine:
    """
    Build the async engine for a database URL.

    PostgreSQL connections are pinged before reuse. An in-memory SQLite
    database lives on one shared connection, otherwise every checkout
    would see an empty database.
    """
    options: Dict[str, Any] = {"echo": False}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_pre_ping"] = True
    options.update(overrides)
    return create_async_engine(url, **options)


def session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Loaded cards stay readable after the learner transaction commits.
    return async_sessionmaker(bind=bind, expire_on_commit=False, class_=AsyncSession)


engine = create_engine_for(DATABASE_URL)
AsyncSessionLocal = session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; the review service commits per learner write."""
    async with AsyncSessionLocal() as session:
        yield session
