from __future__ import annotations

import pytest

from src.db.models import Base, User
from src.db.session import create_engine_for, session_factory


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def engine():
    engine = create_engine_for("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    async with session_factory(engine)() as session:
        yield session


@pytest.fixture
async def learner(db) -> User:
    user = User(email="learner@example.com", username="learner", is_active=True)
    db.add(user)
    await db.commit()
    return user
