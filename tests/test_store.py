from __future__ import annotations

import datetime as dt

import pytest

from src.db.models import ReviewEvent
from src.scheduling.card_state import new_card
from src.scheduling.errors import LearnerNotFoundError
from src.scheduling.store import SqlAlchemyReviewStore


NOW = dt.datetime(2025, 5, 1, 8, 0, tzinfo=dt.timezone.utc)


@pytest.mark.anyio
async def test_get_or_create_schedule_is_idempotent(db, learner):
    store = SqlAlchemyReviewStore(db)
    async with store.learner_transaction(learner.id):
        first = await store.get_or_create_schedule(learner.id)
        second = await store.get_or_create_schedule(learner.id)

    assert first.id == second.id
    assert (await store.get_schedule(learner.id)).intervals == [1, 2, 7, 30, 365]


@pytest.mark.anyio
async def test_learner_transaction_rolls_back_on_error(db, learner):
    store = SqlAlchemyReviewStore(db)
    learner_id = learner.id

    with pytest.raises(RuntimeError):
        async with store.learner_transaction(learner_id):
            card = new_card(
                owner_id=learner_id,
                word="kat",
                definition="cat",
                schedule_intervals=[1],
                now=NOW,
            )
            await store.upsert_card_state(card)
            raise RuntimeError("boom")

    assert await store.get_cards_by_owner(learner_id) == []


@pytest.mark.anyio
async def test_learner_transaction_requires_existing_learner(db):
    store = SqlAlchemyReviewStore(db)
    with pytest.raises(LearnerNotFoundError):
        async with store.learner_transaction(404):
            pass


@pytest.mark.anyio
async def test_review_events_range_is_half_open(db, learner):
    store = SqlAlchemyReviewStore(db)
    async with store.learner_transaction(learner.id):
        card = new_card(owner_id=learner.id, word="hond", definition="dog", schedule_intervals=[1], now=NOW)
        await store.upsert_card_state(card)
        for hours in (0, 5, 24):
            await store.append_review_event(
                ReviewEvent(
                    card_id=card.id,
                    user_id=learner.id,
                    is_success=True,
                    quality=4,
                    created_at=NOW + dt.timedelta(hours=hours),
                )
            )

    events = await store.get_review_events_for_card(card.id, NOW, NOW + dt.timedelta(days=1))
    assert [e.created_at for e in events] == [NOW, NOW + dt.timedelta(hours=5)]

    owner_events = await store.get_review_events_for_owner(learner.id, start=NOW + dt.timedelta(hours=1))
    assert len(owner_events) == 2
