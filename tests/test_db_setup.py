from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from scripts.check_db import missing_tables, plain_dsn
from src.db.models import Base, User
from src.db.session import create_engine_for, session_factory


def test_in_memory_sqlite_shares_one_connection():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    assert isinstance(engine.sync_engine.pool, StaticPool)

    file_engine = create_engine_for("sqlite+aiosqlite:///reviews.db")
    assert not isinstance(file_engine.sync_engine.pool, StaticPool)


@pytest.mark.anyio
async def test_session_factory_keeps_objects_loaded_after_commit():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = session_factory(engine)
    async with factory() as session:
        user = User(email="a@example.com", username="a", is_active=True)
        session.add(user)
        await session.commit()
        # No refresh needed after commit.
        assert user.username == "a"

    async with factory() as session:
        found = (await session.execute(select(User.email))).scalars().all()
    assert found == ["a@example.com"]
    await engine.dispose()


def test_missing_review_tables_are_reported():
    assert missing_tables(Base.metadata.tables) == []
    assert missing_tables(["users", "cards", "alembic_version"]) == [
        "review_events",
        "review_schedules",
        "review_sessions",
        "streak_states",
    ]


def test_plain_dsn_strips_the_driver():
    assert plain_dsn("postgresql+asyncpg://u:p@db:5432/reviews") == "postgresql://u:p@db:5432/reviews"
    assert plain_dsn("postgresql://u:p@db/reviews") == "postgresql://u:p@db/reviews"
