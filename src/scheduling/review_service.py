"""
Review scheduling service.

Async facade over the in-memory scheduling components and a ``ReviewStore``.
Every write path runs under the learner's process-local lock and inside the
store's learner transaction; read paths take neither.
"""

from __future__ import annotations

import datetime as dt
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Mapping, Optional, Sequence, Set

from src.db.models import Card, ReviewSchedule, ReviewSession, StreakState
from src.db.types import utcnow
from src.scheduling.card_state import apply_review, new_card, pause, reactivate
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import day_bounds, ensure_aware, local_date, start_of_day
from src.scheduling.due_selector import DueCard, DueSelector
from src.scheduling.enums import CardStatus
from src.scheduling.errors import (
    CardNotFoundError,
    InvalidInputError,
    InvalidStateError,
    SessionNotFoundError,
)
from src.scheduling.locks import LearnerLocks
from src.scheduling.projector import FutureProjector, Projection
from src.scheduling.quality import to_quality
from src.scheduling.scheduler import SM2Scheduler
from src.scheduling.session_assembler import DailySessionConfig, SessionAssembler, SessionPlan
from src.scheduling.stats import compute_stats, difficult_cards, learning_velocity, review_history
from src.scheduling.store import ReviewStore
from src.scheduling.streak import StreakTracker, empty_streak


logger = logging.getLogger(__name__)


SESSION_MODES = ("flashcard", "multiple-choice")
RESULT_FIELDS = ("cards_reviewed", "correct_answers", "time_spent")


@dataclass
class DuePage:
    items: List[DueCard]
    total: int
    has_more: bool


@dataclass
class SessionProgress:
    total_cards: int
    reviewed_cards: int
    remaining_cards: int
    is_completed: bool


class ReviewService:
    def __init__(
        self,
        store: ReviewStore,
        locks: Optional[LearnerLocks] = None,
        config: Optional[SchedulingConfig] = None,
    ) -> None:
        self.store = store
        self.locks = locks or LearnerLocks()
        self.config = config or SchedulingConfig()
        self.scheduler = SM2Scheduler(self.config)
        self.due_selector = DueSelector(self.config)
        self.projector = FutureProjector(self.config)
        self.assembler = SessionAssembler(self.config)
        self.streaks = StreakTracker(self.config)

    @asynccontextmanager
    async def _learner_write(self, owner_id: int) -> AsyncIterator[None]:
        async with self.locks.hold(owner_id):
            async with self.store.learner_transaction(owner_id):
                yield

    @staticmethod
    def _now(now: Optional[dt.datetime]) -> dt.datetime:
        return ensure_aware(now) if now is not None else utcnow()

    async def _reviewed_today(self, owner_id: int, now: dt.datetime) -> Set[int]:
        start, end = day_bounds(now, self.config.tzinfo)
        events = await self.store.get_review_events_for_owner(owner_id, start, end)
        return {event.card_id for event in events}

    async def _touch_streak(self, owner_id: int, now: dt.datetime) -> StreakState:
        state = await self.store.get_streak_state(owner_id)
        if state is None:
            state = empty_streak(owner_id, now)
        self.streaks.record_activity(state, now)
        return await self.store.upsert_streak_state(owner_id, state)

    # Cards

    async def create_card(
        self,
        owner_id: int,
        word: str,
        definition: str,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Card:
        word = (word or "").strip()
        definition = (definition or "").strip()
        if not word or not definition:
            raise InvalidInputError("word and definition must not be empty")

        now = self._now(now)
        async with self._learner_write(owner_id):
            schedule = await self.store.get_or_create_schedule(owner_id)
            card = new_card(
                owner_id=owner_id,
                word=word,
                definition=definition,
                schedule_intervals=schedule.intervals,
                now=now,
                config=self.config,
            )
            await self.store.upsert_card_state(card)
        logger.info("Created card %s for learner %s (due %s)", card.id, owner_id, card.next_review)
        return card

    async def submit_review(
        self,
        owner_id: int,
        card_id: int,
        *,
        is_success: bool,
        difficulty: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> Card:
        """
        Apply one review outcome to a card.

        Maps the outcome to an SM-2 quality, updates the card, appends a
        ``ReviewEvent`` and counts the activity towards the learner's streak,
        all in one learner-scoped transaction.
        """
        now = self._now(now)
        quality = to_quality(is_success, difficulty)
        async with self._learner_write(owner_id):
            card = await self.store.get_card(owner_id, card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            event = apply_review(
                card,
                is_success=is_success,
                quality=quality,
                now=now,
                scheduler=self.scheduler,
            )
            await self.store.upsert_card_state(card)
            await self.store.append_review_event(event)
            await self._touch_streak(owner_id, now)

        logger.info(
            "Learner %s reviewed card %s: success=%s quality=%s interval=%s ease=%s status=%s",
            owner_id,
            card_id,
            is_success,
            quality,
            card.interval,
            card.ease_factor,
            CardStatus(card.status).value,
        )
        return card

    async def add_to_review(
        self,
        owner_id: int,
        card_ids: Sequence[int],
        *,
        now: Optional[dt.datetime] = None,
    ) -> int:
        """Reactivate cards (any status) so they are due now. Returns the count."""
        if not card_ids:
            raise InvalidInputError("card_ids must not be empty")
        now = self._now(now)
        async with self._learner_write(owner_id):
            cards = await self._require_cards(owner_id, card_ids)
            for card in cards:
                reactivate(card, now=now)
                await self.store.upsert_card_state(card)
        logger.info("Learner %s added %s cards to review", owner_id, len(cards))
        return len(cards)

    async def pause_cards(
        self,
        owner_id: int,
        card_ids: Sequence[int],
        *,
        now: Optional[dt.datetime] = None,
    ) -> int:
        """Pause ACTIVE cards. Returns how many were paused."""
        if not card_ids:
            raise InvalidInputError("card_ids must not be empty")
        now = self._now(now)
        paused = 0
        async with self._learner_write(owner_id):
            for card in await self._require_cards(owner_id, card_ids):
                if pause(card, now=now):
                    await self.store.upsert_card_state(card)
                    paused += 1
        logger.info("Learner %s paused %s cards", owner_id, paused)
        return paused

    async def _require_cards(self, owner_id: int, card_ids: Sequence[int]) -> List[Card]:
        by_id = await self.store.get_cards_by_ids(owner_id, card_ids)
        for card_id in card_ids:
            if card_id not in by_id:
                raise CardNotFoundError(card_id)
        return [by_id[card_id] for card_id in dict.fromkeys(card_ids)]

    # Due and upcoming

    async def get_due_today(
        self,
        owner_id: int,
        *,
        limit: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> DuePage:
        now = self._now(now)
        cards = await self.store.get_cards_by_owner(owner_id, CardStatus.ACTIVE)
        reviewed_today = await self._reviewed_today(owner_id, now)
        due = self.due_selector.select(cards=cards, reviewed_today=reviewed_today, now=now)
        items = due if limit is None else due[: max(0, limit)]
        # A full page reports more even when it holds exactly the last due card.
        has_more = bool(limit) and len(items) == limit
        return DuePage(items=items, total=len(due), has_more=has_more)

    async def get_upcoming(
        self,
        owner_id: int,
        *,
        start_offset_days: Optional[int] = None,
        window_days: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> Projection:
        now = self._now(now)
        if start_offset_days is None:
            start_offset_days = self.config.upcoming_start_offset_days
        if window_days is None:
            window_days = self.config.upcoming_window_days

        schedule = await self.store.get_schedule(owner_id)
        intervals = list(schedule.intervals) if schedule else list(self.config.default_intervals)
        cards = await self.store.get_cards_by_owner(owner_id, CardStatus.ACTIVE)

        tz = self.config.tzinfo
        start_date, end_date = self.projector.window(now, start_offset_days, window_days)
        events = await self.store.get_review_events_for_owner(
            owner_id,
            start_of_day(start_date, tz),
            start_of_day(end_date, tz),
        )
        reviewed_dates: Dict[int, Set[dt.date]] = {}
        for event in events:
            reviewed_dates.setdefault(event.card_id, set()).add(local_date(event.created_at, tz))

        return self.projector.project(
            cards=cards,
            intervals=intervals,
            reviewed_dates=reviewed_dates,
            now=now,
            start_offset_days=start_offset_days,
            window_days=window_days,
        )

    # Sessions

    async def _persist_plan(
        self,
        owner_id: int,
        plan: SessionPlan,
        *,
        now: dt.datetime,
        mode: str = "flashcard",
        is_repeat: bool = False,
    ) -> ReviewSession:
        session = ReviewSession(
            user_id=owner_id,
            mode=mode,
            is_repeat=is_repeat,
            session_type=plan.session_type,
            cards=plan.cards,
            metadata_json=plan.metadata,
            started_at=now,
        )
        await self.store.create_review_session(session)
        logger.info(
            "Created %s session %s for learner %s with %s cards",
            plan.session_type.value,
            session.id,
            owner_id,
            len(plan.cards),
        )
        return session

    async def create_daily_session(
        self,
        owner_id: int,
        options: Optional[DailySessionConfig] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ReviewSession]:
        """Persist today's session, or return None when nothing is due."""
        now = self._now(now)
        options = options or DailySessionConfig(
            max_reviews=self.config.default_max_reviews,
            max_new_cards=self.config.default_max_new_cards,
        )
        async with self._learner_write(owner_id):
            cards = await self.store.get_cards_by_owner(owner_id, CardStatus.ACTIVE)
            reviewed_today = await self._reviewed_today(owner_id, now)
            due = self.due_selector.select(
                cards=cards,
                reviewed_today=reviewed_today,
                now=now,
                limit=options.max_reviews,
            )
            plan = self.assembler.plan_daily(due, options=options)
            if plan is None:
                logger.debug("No due cards for learner %s; no daily session", owner_id)
                return None
            return await self._persist_plan(owner_id, plan, now=now)

    async def create_failed_cards_session(
        self,
        owner_id: int,
        days: Optional[int] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> Optional[ReviewSession]:
        now = self._now(now)
        async with self._learner_write(owner_id):
            cards = await self.store.get_cards_by_owner(owner_id, CardStatus.ACTIVE)
            plan = self.assembler.plan_failed(cards, now=now, days=days)
            if plan is None:
                return None
            return await self._persist_plan(owner_id, plan, now=now)

    async def create_custom_session(
        self,
        owner_id: int,
        item_ids: Sequence[int],
        *,
        mode: str = "flashcard",
        is_repeat: bool = False,
        max_cards: Optional[int] = None,
        now: Optional[dt.datetime] = None,
    ) -> ReviewSession:
        if mode not in SESSION_MODES:
            raise InvalidInputError(f"mode must be one of {', '.join(SESSION_MODES)}")
        now = self._now(now)
        async with self._learner_write(owner_id):
            cards_by_id = await self.store.get_cards_by_ids(owner_id, item_ids or [])
            plan = self.assembler.plan_custom(cards_by_id, item_ids, now=now, max_cards=max_cards)
            plan.metadata["mode"] = mode
            return await self._persist_plan(
                owner_id,
                plan,
                now=now,
                mode=mode,
                is_repeat=is_repeat,
            )

    async def get_session(self, owner_id: int, session_id: int) -> ReviewSession:
        session = await self.store.get_review_session(owner_id, session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(self, owner_id: int, *, limit: int = 20) -> List[ReviewSession]:
        return await self.store.list_review_sessions(owner_id, limit=limit)

    async def complete_session(
        self,
        owner_id: int,
        session_id: int,
        results: Optional[Mapping[str, int]] = None,
        *,
        now: Optional[dt.datetime] = None,
    ) -> ReviewSession:
        now = self._now(now)
        async with self._learner_write(owner_id):
            session = await self.get_session(owner_id, session_id)
            if session.completed_at is not None:
                raise InvalidStateError(f"Review session {session_id} is already completed")
            cleaned = _validate_results(results) if results is not None else None
            await self.store.complete_review_session(session, results=cleaned, completed_at=now)
        logger.info("Learner %s completed session %s", owner_id, session_id)
        return session

    async def get_session_progress(self, owner_id: int, session_id: int) -> SessionProgress:
        session = await self.get_session(owner_id, session_id)
        card_ids = {entry["card_id"] for entry in session.cards or []}
        events = await self.store.get_review_events_for_owner(owner_id, start=session.started_at)
        reviewed = card_ids & {event.card_id for event in events}
        return SessionProgress(
            total_cards=len(card_ids),
            reviewed_cards=len(reviewed),
            remaining_cards=len(card_ids) - len(reviewed),
            is_completed=session.completed_at is not None,
        )

    # Streak

    async def record_streak_activity(
        self,
        owner_id: int,
        *,
        now: Optional[dt.datetime] = None,
    ) -> StreakState:
        now = self._now(now)
        async with self._learner_write(owner_id):
            return await self._touch_streak(owner_id, now)

    async def get_streak(self, owner_id: int) -> StreakState:
        state = await self.store.get_streak_state(owner_id)
        if state is None:
            return empty_streak(owner_id, utcnow())
        return state

    # Schedule

    async def get_schedule(self, owner_id: int) -> ReviewSchedule:
        async with self._learner_write(owner_id):
            return await self.store.get_or_create_schedule(owner_id)

    async def update_schedule(
        self,
        owner_id: int,
        *,
        intervals: Optional[Sequence[int]] = None,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ReviewSchedule:
        if intervals is not None:
            intervals = _validate_intervals(intervals)
        async with self._learner_write(owner_id):
            schedule = await self.store.get_or_create_schedule(owner_id)
            if intervals is not None:
                schedule.intervals = intervals
            if name is not None:
                schedule.name = name
            if description is not None:
                schedule.description = description
            await self.store.update_schedule(schedule)
        logger.info("Learner %s updated review schedule to %s", owner_id, schedule.intervals)
        return schedule

    # Statistics

    async def get_stats(self, owner_id: int, *, now: Optional[dt.datetime] = None) -> dict:
        now = self._now(now)
        cards = await self.store.get_cards_by_owner(owner_id)
        start, end = day_bounds(now, self.config.tzinfo)
        events = await self.store.get_review_events_for_owner(owner_id, start, end)
        return compute_stats(cards=cards, events=events, now=now, config=self.config)

    async def get_review_history(
        self,
        owner_id: int,
        *,
        start: Optional[dt.datetime] = None,
        end: Optional[dt.datetime] = None,
        days: int = 30,
        now: Optional[dt.datetime] = None,
    ) -> dict:
        end = ensure_aware(end) if end is not None else self._now(now)
        start = ensure_aware(start) if start is not None else end - dt.timedelta(days=days)
        if start > end:
            raise InvalidInputError("start must not be after end")
        cards = await self.store.get_cards_by_owner(owner_id)
        return review_history(cards=cards, start=start, end=end, config=self.config)

    async def get_learning_velocity(
        self,
        owner_id: int,
        *,
        period: str = "daily",
        days: int = 30,
        now: Optional[dt.datetime] = None,
    ) -> List[dict]:
        if days <= 0:
            raise InvalidInputError("days must be positive")
        history = await self.get_review_history(owner_id, days=days, now=now)
        return learning_velocity(history["reviews_by_date"], period)

    async def get_difficult_cards(self, owner_id: int, *, limit: int = 10) -> List[dict]:
        if limit <= 0:
            raise InvalidInputError("limit must be positive")
        cards = await self.store.get_cards_by_owner(owner_id)
        found = difficult_cards(cards, limit=limit)
        logger.debug("Found %s difficult cards for learner %s", len(found), owner_id)
        return found


def _validate_intervals(intervals: Sequence[int]) -> List[int]:
    values = list(intervals)
    if not values:
        raise InvalidInputError("intervals must not be empty")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise InvalidInputError("intervals must be positive integers")
    return values


def _validate_results(results: Mapping[str, int]) -> Dict[str, int]:
    cleaned: Dict[str, int] = {}
    for key in RESULT_FIELDS:
        value = results.get(key)
        if value is None:
            continue
        if value < 0:
            raise InvalidInputError(f"{key} must not be negative")
        cleaned[key] = value
    reviewed = cleaned.get("cards_reviewed")
    correct = cleaned.get("correct_answers")
    if reviewed is not None and correct is not None and correct > reviewed:
        raise InvalidStateError("correct_answers cannot exceed cards_reviewed")
    return cleaned
