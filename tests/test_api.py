"""
Tests for the review API routes.

Each test gets a fresh SQLite database file; ``get_db`` is overridden so the
app never touches the configured PostgreSQL database.
"""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from src.api.main import app
from src.auth.service import create_access_token
from src.db.models import Base, User
from src.db.session import create_engine_for, get_db, session_factory


@pytest.fixture
def client(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)
    factory = session_factory(engine)

    async def _setup() -> int:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as session:
            user = User(email="api@example.com", username="api", is_active=True)
            session.add(user)
            await session.commit()
            return user.id

    user_id = asyncio.run(_setup())

    async def _override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        test_client.headers.update({"Authorization": f"Bearer {create_access_token(user_id)}"})
        yield test_client
    app.dependency_overrides.clear()
    asyncio.run(engine.dispose())


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_review_endpoints_require_auth(client: TestClient):
    no_auth = {"Authorization": ""}
    assert client.get("/api/reviews/due", headers=no_auth).status_code == 401
    assert client.post("/api/reviews/submit", json={"card_id": 1, "is_success": True}, headers=no_auth).status_code == 401
    assert client.get("/api/reviews/stats", headers=no_auth).status_code == 401


def test_me(client: TestClient):
    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json()["username"] == "api"


def test_card_review_flow(client: TestClient):
    r = client.post("/api/reviews/cards", json={"word": "huis", "definition": "house"})
    assert r.status_code == 201
    card = r.json()
    assert card["status"] == "ACTIVE"
    assert card["review_step"] == 0

    # New cards are first due one schedule step after creation.
    r = client.get("/api/reviews/due")
    assert r.status_code == 200
    assert r.json()["cards"] == []

    r = client.post("/api/reviews/cards/activate", json={"card_ids": [card["id"]]})
    assert r.status_code == 200
    assert r.json() == {"updated": 1}

    due = client.get("/api/reviews/due", params={"limit": 10}).json()
    assert [d["card"]["id"] for d in due["cards"]] == [card["id"]]
    assert due["total"] == 1
    assert due["has_more"] is False

    r = client.post(
        "/api/reviews/submit",
        json={"card_id": card["id"], "is_success": True, "difficulty": 3},
    )
    assert r.status_code == 200
    reviewed = r.json()
    assert reviewed["success_count"] == 1
    assert reviewed["consecutive_correct"] == 1
    assert reviewed["ease_factor"] == 2.6

    assert client.get("/api/reviews/due").json()["cards"] == []
    assert client.post("/api/reviews/sessions/daily", json={}).json() is None

    streak = client.get("/api/reviews/streak").json()
    assert streak["current_streak"] == 1

    stats = client.get("/api/reviews/stats").json()
    assert stats["total_cards"] == 1
    assert stats["reviews_today"] == 1
    assert stats["success_rate"] == 100

    upcoming = client.get("/api/reviews/upcoming", params={"start_offset_days": 0, "window_days": 7}).json()
    assert upcoming["total"] >= 1
    assert upcoming["intervals"] == [1, 2, 7, 30, 365]

    history = client.get("/api/reviews/history").json()
    assert [c["id"] for c in history["cards"]] == [card["id"]]

    velocity = client.get("/api/reviews/analytics/velocity", params={"period": "monthly"}).json()
    assert len(velocity) == 1
    assert velocity[0]["reviews_completed"] == 1
    assert velocity[0]["accuracy"] == 100.0

    assert client.get("/api/reviews/analytics/difficult-cards").json() == []
    r = client.get("/api/reviews/analytics/velocity", params={"period": "hourly"})
    assert r.status_code == 422


def test_error_mapping(client: TestClient):
    r = client.post("/api/reviews/submit", json={"card_id": 999, "is_success": False})
    assert r.status_code == 404

    r = client.put("/api/reviews/schedule", json={"intervals": [1, 0]})
    assert r.status_code == 400

    r = client.get("/api/reviews/sessions/12345")
    assert r.status_code == 404

    r = client.post("/api/reviews/sessions/custom", json={"item_ids": []})
    assert r.status_code == 400


def test_custom_session_lifecycle(client: TestClient):
    ids = [
        client.post("/api/reviews/cards", json={"word": w, "definition": d}).json()["id"]
        for w, d in (("kat", "cat"), ("hond", "dog"))
    ]

    r = client.post(
        "/api/reviews/sessions/custom",
        json={"item_ids": ids, "mode": "multiple-choice", "is_repeat": True},
    )
    assert r.status_code == 201
    session = r.json()
    assert session["session_type"] == "custom"
    assert session["mode"] == "multiple-choice"
    assert [entry["card_id"] for entry in session["cards"]] == ids

    progress = client.get(f"/api/reviews/sessions/{session['id']}/progress").json()
    assert progress == {"total_cards": 2, "reviewed_cards": 0, "remaining_cards": 2, "is_completed": False}

    r = client.post(
        f"/api/reviews/sessions/{session['id']}/complete",
        json={"results": {"cards_reviewed": 2, "correct_answers": 3}},
    )
    assert r.status_code == 400

    r = client.post(
        f"/api/reviews/sessions/{session['id']}/complete",
        json={"results": {"cards_reviewed": 2, "correct_answers": 1}},
    )
    assert r.status_code == 200
    assert r.json()["results_json"] == {"cards_reviewed": 2, "correct_answers": 1}

    r = client.post(f"/api/reviews/sessions/{session['id']}/complete", json={})
    assert r.status_code == 400

    sessions = client.get("/api/reviews/sessions").json()
    assert [s["id"] for s in sessions] == [session["id"]]


def test_schedule_roundtrip(client: TestClient):
    r = client.get("/api/reviews/schedule")
    assert r.status_code == 200
    assert r.json()["name"] == "Default Schedule"

    r = client.put("/api/reviews/schedule", json={"intervals": [2, 4, 8], "name": "Mine"})
    assert r.status_code == 200
    assert r.json()["intervals"] == [2, 4, 8]
    assert r.json()["name"] == "Mine"
