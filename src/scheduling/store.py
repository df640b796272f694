"""
Persistence collaborator for the scheduling core.

``ReviewStore`` is the narrow, storage-shaped surface the service relies on;
``SqlAlchemyReviewStore`` implements it over an ``AsyncSession``. Store
methods only flush; ``learner_transaction`` owns commit and rollback.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from typing import (
    AsyncContextManager,
    AsyncIterator,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
)

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from src.db.models import (
    DEFAULT_SCHEDULE_INTERVALS,
    Card,
    ReviewEvent,
    ReviewSchedule,
    ReviewSession,
    StreakState,
    User,
)
from src.scheduling.enums import CardStatus
from src.scheduling.errors import ConcurrencyConflictError, LearnerNotFoundError


logger = logging.getLogger(__name__)


DEFAULT_SCHEDULE_NAME = "Default Schedule"
DEFAULT_SCHEDULE_DESCRIPTION = "Default spaced repetition schedule"


class ReviewStore(Protocol):
    def learner_transaction(self, owner_id: int) -> AsyncContextManager[None]:
        ...

    async def get_cards_by_owner(
        self,
        owner_id: int,
        status: Optional[CardStatus] = None,
    ) -> List[Card]:
        ...

    async def get_card(self, owner_id: int, card_id: int) -> Optional[Card]:
        ...

    async def get_cards_by_ids(self, owner_id: int, card_ids: Iterable[int]) -> Dict[int, Card]:
        ...

    async def get_review_events_for_card(
        self,
        card_id: int,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
    ) -> List[ReviewEvent]:
        ...

    async def get_review_events_for_owner(
        self,
        owner_id: int,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
    ) -> List[ReviewEvent]:
        ...

    async def upsert_card_state(self, card: Card) -> Card:
        ...

    async def append_review_event(self, event: ReviewEvent) -> ReviewEvent:
        ...

    async def get_schedule(self, owner_id: int) -> Optional[ReviewSchedule]:
        ...

    async def get_or_create_schedule(self, owner_id: int) -> ReviewSchedule:
        ...

    async def update_schedule(self, schedule: ReviewSchedule) -> ReviewSchedule:
        ...

    async def get_streak_state(self, owner_id: int) -> Optional[StreakState]:
        ...

    async def upsert_streak_state(self, owner_id: int, state: StreakState) -> StreakState:
        ...

    async def create_review_session(self, session: ReviewSession) -> ReviewSession:
        ...

    async def get_review_session(self, owner_id: int, session_id: int) -> Optional[ReviewSession]:
        ...

    async def list_review_sessions(self, owner_id: int, limit: int = 20) -> List[ReviewSession]:
        ...

    async def complete_review_session(
        self,
        session: ReviewSession,
        *,
        results: Optional[dict],
        completed_at: dt.datetime,
    ) -> ReviewSession:
        ...


class SqlAlchemyReviewStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @asynccontextmanager
    async def learner_transaction(self, owner_id: int) -> AsyncIterator[None]:
        """
        Run a learner-scoped unit of work.

        Locks the learner's ``users`` row (``SELECT ... FOR UPDATE``; a no-op
        on SQLite) so concurrent writers for the same learner queue up in the
        database, commits on success and rolls back on any error. A lost
        update on a card's version column surfaces as
        ``ConcurrencyConflictError``.
        """
        try:
            result = await self.db.execute(
                select(User.id).where(User.id == owner_id).with_for_update()
            )
            if result.scalar_one_or_none() is None:
                raise LearnerNotFoundError(owner_id)
            yield
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            logger.warning("Concurrent update detected for learner %s: %s", owner_id, exc)
            raise ConcurrencyConflictError(
                f"Concurrent update for learner {owner_id}; retry the operation"
            ) from exc
        except Exception:
            await self.db.rollback()
            raise

    async def get_cards_by_owner(
        self,
        owner_id: int,
        status: Optional[CardStatus] = None,
    ) -> List[Card]:
        query = select(Card).where(Card.user_id == owner_id)
        if status is not None:
            query = query.where(Card.status == status)
        result = await self.db.execute(query.order_by(Card.id))
        return list(result.scalars().all())

    async def get_card(self, owner_id: int, card_id: int) -> Optional[Card]:
        result = await self.db.execute(
            select(Card).where(Card.id == card_id, Card.user_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def get_cards_by_ids(self, owner_id: int, card_ids: Iterable[int]) -> Dict[int, Card]:
        ids = list(set(card_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Card).where(Card.user_id == owner_id, Card.id.in_(ids))
        )
        return {card.id: card for card in result.scalars().all()}

    async def get_review_events_for_card(
        self,
        card_id: int,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
    ) -> List[ReviewEvent]:
        query = select(ReviewEvent).where(ReviewEvent.card_id == card_id)
        query = _within(query, start, end)
        result = await self.db.execute(query.order_by(ReviewEvent.created_at, ReviewEvent.id))
        return list(result.scalars().all())

    async def get_review_events_for_owner(
        self,
        owner_id: int,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
    ) -> List[ReviewEvent]:
        query = select(ReviewEvent).where(ReviewEvent.user_id == owner_id)
        query = _within(query, start, end)
        result = await self.db.execute(query.order_by(ReviewEvent.created_at, ReviewEvent.id))
        return list(result.scalars().all())

    async def upsert_card_state(self, card: Card) -> Card:
        self.db.add(card)
        await self.db.flush()
        return card

    async def append_review_event(self, event: ReviewEvent) -> ReviewEvent:
        self.db.add(event)
        await self.db.flush()
        return event

    async def get_schedule(self, owner_id: int) -> Optional[ReviewSchedule]:
        result = await self.db.execute(
            select(ReviewSchedule).where(ReviewSchedule.user_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_schedule(self, owner_id: int) -> ReviewSchedule:
        schedule = await self.get_schedule(owner_id)
        if schedule is not None:
            return schedule
        schedule = ReviewSchedule(
            user_id=owner_id,
            intervals=list(DEFAULT_SCHEDULE_INTERVALS),
            name=DEFAULT_SCHEDULE_NAME,
            description=DEFAULT_SCHEDULE_DESCRIPTION,
            is_default=True,
        )
        self.db.add(schedule)
        await self.db.flush()
        logger.info("Created default review schedule for learner %s", owner_id)
        return schedule

    async def update_schedule(self, schedule: ReviewSchedule) -> ReviewSchedule:
        self.db.add(schedule)
        await self.db.flush()
        return schedule

    async def get_streak_state(self, owner_id: int) -> Optional[StreakState]:
        result = await self.db.execute(
            select(StreakState).where(StreakState.user_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def upsert_streak_state(self, owner_id: int, state: StreakState) -> StreakState:
        state.user_id = owner_id
        self.db.add(state)
        await self.db.flush()
        return state

    async def create_review_session(self, session: ReviewSession) -> ReviewSession:
        self.db.add(session)
        await self.db.flush()
        return session

    async def get_review_session(self, owner_id: int, session_id: int) -> Optional[ReviewSession]:
        result = await self.db.execute(
            select(ReviewSession).where(
                ReviewSession.id == session_id,
                ReviewSession.user_id == owner_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_review_sessions(self, owner_id: int, limit: int = 20) -> List[ReviewSession]:
        result = await self.db.execute(
            select(ReviewSession)
            .where(ReviewSession.user_id == owner_id)
            .order_by(ReviewSession.started_at.desc(), ReviewSession.id.desc())
            .limit(max(0, limit))
        )
        return list(result.scalars().all())

    async def complete_review_session(
        self,
        session: ReviewSession,
        *,
        results: Optional[dict],
        completed_at: dt.datetime,
    ) -> ReviewSession:
        session.completed_at = completed_at
        if results is not None:
            session.results_json = dict(results)
        self.db.add(session)
        await self.db.flush()
        return session


def _within(query, start: Optional[dt.datetime], end: Optional[dt.datetime]):
    """Restrict a ReviewEvent query to ``[start, end)``."""
    if start is not None:
        query = query.where(ReviewEvent.created_at >= start)
    if end is not None:
        query = query.where(ReviewEvent.created_at < end)
    return query
