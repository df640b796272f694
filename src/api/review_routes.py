from __future__ import annotations

import dataclasses
import datetime as dt
from contextlib import contextmanager
from typing import Annotated, Iterator, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.auth.dependencies import get_current_active_user
from src.db.models import User
from src.scheduling.errors import (
    ConcurrencyConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from src.scheduling.projector import Projection
from src.scheduling.review_service import ReviewService
from src.scheduling.schemas import (
    CardCreateRequest,
    CardIdsRequest,
    CardIdsResponse,
    CardOut,
    CustomSessionRequest,
    DailySessionRequest,
    DifficultCardOut,
    DueCardOut,
    DueTodayResponse,
    FailedSessionRequest,
    HistoryResponse,
    ReviewSessionOut,
    ReviewSubmitRequest,
    ScheduleOut,
    ScheduleUpdateRequest,
    SessionCompleteRequest,
    SessionProgressOut,
    StatsResponse,
    StreakOut,
    UpcomingResponse,
    VelocityPointOut,
)
from src.scheduling.session_assembler import DailySessionConfig
from .deps import get_review_service


router = APIRouter(prefix="/api/reviews", tags=["reviews"])

Service = Annotated[ReviewService, Depends(get_review_service)]
CurrentUser = Annotated[User, Depends(get_current_active_user)]


@contextmanager
def _scheduling_errors() -> Iterator[None]:
    """Translate scheduling errors into HTTP responses."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    except (InvalidStateError, InvalidInputError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except ConcurrencyConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _upcoming_response(projection: Projection) -> UpcomingResponse:
    return UpcomingResponse(
        start_date=projection.start_date,
        end_date=projection.end_date,
        intervals=projection.intervals,
        total=projection.total,
        days={day: dataclasses.asdict(bucket) for day, bucket in projection.buckets.items()},
    )


# Cards


@router.post("/cards", response_model=CardOut, status_code=status.HTTP_201_CREATED)
async def create_card(payload: CardCreateRequest, service: Service, user: CurrentUser) -> CardOut:
    with _scheduling_errors():
        card = await service.create_card(user.id, payload.word, payload.definition)
    return CardOut.model_validate(card)


@router.post("/cards/activate", response_model=CardIdsResponse)
async def add_to_review(payload: CardIdsRequest, service: Service, user: CurrentUser) -> CardIdsResponse:
    """Put cards (back) into active review, due now."""
    with _scheduling_errors():
        updated = await service.add_to_review(user.id, payload.card_ids)
    return CardIdsResponse(updated=updated)


@router.post("/cards/pause", response_model=CardIdsResponse)
async def pause_cards(payload: CardIdsRequest, service: Service, user: CurrentUser) -> CardIdsResponse:
    with _scheduling_errors():
        updated = await service.pause_cards(user.id, payload.card_ids)
    return CardIdsResponse(updated=updated)


@router.post("/submit", response_model=CardOut)
async def submit_review(payload: ReviewSubmitRequest, service: Service, user: CurrentUser) -> CardOut:
    """
    Record a correct/incorrect answer for a card and reschedule it.
    """
    with _scheduling_errors():
        card = await service.submit_review(
            user.id,
            payload.card_id,
            is_success=payload.is_success,
            difficulty=payload.difficulty,
        )
    return CardOut.model_validate(card)


# Due and upcoming


@router.get("/due", response_model=DueTodayResponse)
async def get_due_today(
    service: Service,
    user: CurrentUser,
    limit: Annotated[Optional[int], Query(ge=1, le=500)] = None,
) -> DueTodayResponse:
    page = await service.get_due_today(user.id, limit=limit)
    return DueTodayResponse(
        cards=[
            DueCardOut(
                card=CardOut.model_validate(due.card),
                is_overdue=due.is_overdue,
                failure_rate=due.failure_rate,
                days_since_created=due.days_since_created,
            )
            for due in page.items
        ],
        total=page.total,
        has_more=page.has_more,
    )


@router.get("/upcoming", response_model=UpcomingResponse)
async def get_upcoming(
    service: Service,
    user: CurrentUser,
    start_offset_days: Annotated[Optional[int], Query(ge=-365, le=365)] = None,
    window_days: Annotated[Optional[int], Query(ge=1, le=90)] = None,
) -> UpcomingResponse:
    """
    Forecast reviews per calendar day over a window relative to today.
    """
    projection = await service.get_upcoming(
        user.id,
        start_offset_days=start_offset_days,
        window_days=window_days,
    )
    return _upcoming_response(projection)


# Sessions


@router.post("/sessions/daily", response_model=Optional[ReviewSessionOut])
async def create_daily_session(
    service: Service,
    user: CurrentUser,
    payload: Optional[DailySessionRequest] = None,
) -> Optional[ReviewSessionOut]:
    """Create today's session; responds with null when nothing is due."""
    payload = payload or DailySessionRequest()
    options = DailySessionConfig(
        max_reviews=payload.max_reviews,
        max_new_cards=payload.max_new_cards,
        prioritize_overdue=payload.prioritize_overdue,
    )
    with _scheduling_errors():
        session = await service.create_daily_session(user.id, options)
    if session is None:
        return None
    return ReviewSessionOut.model_validate(session)


@router.post("/sessions/failed", response_model=Optional[ReviewSessionOut])
async def create_failed_cards_session(
    service: Service,
    user: CurrentUser,
    payload: Optional[FailedSessionRequest] = None,
) -> Optional[ReviewSessionOut]:
    payload = payload or FailedSessionRequest()
    with _scheduling_errors():
        session = await service.create_failed_cards_session(user.id, payload.days)
    if session is None:
        return None
    return ReviewSessionOut.model_validate(session)


@router.post("/sessions/custom", response_model=ReviewSessionOut, status_code=status.HTTP_201_CREATED)
async def create_custom_session(
    payload: CustomSessionRequest,
    service: Service,
    user: CurrentUser,
) -> ReviewSessionOut:
    with _scheduling_errors():
        session = await service.create_custom_session(
            user.id,
            payload.item_ids,
            mode=payload.mode,
            is_repeat=payload.is_repeat,
            max_cards=payload.max_cards,
        )
    return ReviewSessionOut.model_validate(session)


@router.get("/sessions", response_model=List[ReviewSessionOut])
async def list_sessions(
    service: Service,
    user: CurrentUser,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> List[ReviewSessionOut]:
    sessions = await service.list_sessions(user.id, limit=limit)
    return [ReviewSessionOut.model_validate(s) for s in sessions]


@router.get("/sessions/{session_id}", response_model=ReviewSessionOut)
async def get_session(session_id: int, service: Service, user: CurrentUser) -> ReviewSessionOut:
    with _scheduling_errors():
        session = await service.get_session(user.id, session_id)
    return ReviewSessionOut.model_validate(session)


@router.get("/sessions/{session_id}/progress", response_model=SessionProgressOut)
async def get_session_progress(session_id: int, service: Service, user: CurrentUser) -> SessionProgressOut:
    with _scheduling_errors():
        progress = await service.get_session_progress(user.id, session_id)
    return SessionProgressOut(**dataclasses.asdict(progress))


@router.post("/sessions/{session_id}/complete", response_model=ReviewSessionOut)
async def complete_session(
    session_id: int,
    service: Service,
    user: CurrentUser,
    payload: Optional[SessionCompleteRequest] = None,
) -> ReviewSessionOut:
    results = None
    if payload is not None and payload.results is not None:
        results = payload.results.model_dump(exclude_none=True)
    with _scheduling_errors():
        session = await service.complete_session(user.id, session_id, results)
    return ReviewSessionOut.model_validate(session)


# Streak, schedule, statistics


@router.get("/streak", response_model=StreakOut)
async def get_streak(service: Service, user: CurrentUser) -> StreakOut:
    return StreakOut.model_validate(await service.get_streak(user.id))


@router.post("/streak/activity", response_model=StreakOut)
async def record_streak_activity(service: Service, user: CurrentUser) -> StreakOut:
    with _scheduling_errors():
        state = await service.record_streak_activity(user.id)
    return StreakOut.model_validate(state)


@router.get("/schedule", response_model=ScheduleOut)
async def get_schedule(service: Service, user: CurrentUser) -> ScheduleOut:
    with _scheduling_errors():
        schedule = await service.get_schedule(user.id)
    return ScheduleOut.model_validate(schedule)


@router.put("/schedule", response_model=ScheduleOut)
async def update_schedule(
    payload: ScheduleUpdateRequest,
    service: Service,
    user: CurrentUser,
) -> ScheduleOut:
    with _scheduling_errors():
        schedule = await service.update_schedule(
            user.id,
            intervals=payload.intervals,
            name=payload.name,
            description=payload.description,
        )
    return ScheduleOut.model_validate(schedule)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(service: Service, user: CurrentUser) -> StatsResponse:
    return StatsResponse(**await service.get_stats(user.id))


@router.get("/history", response_model=HistoryResponse)
async def get_review_history(
    service: Service,
    user: CurrentUser,
    start: Optional[dt.datetime] = None,
    end: Optional[dt.datetime] = None,
    days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> HistoryResponse:
    with _scheduling_errors():
        history = await service.get_review_history(user.id, start=start, end=end, days=days)
    return HistoryResponse(
        cards=[CardOut.model_validate(card) for card in history["cards"]],
        statistics=history["statistics"],
        reviews_by_date={
            day: [CardOut.model_validate(card) for card in cards]
            for day, cards in history["reviews_by_date"].items()
        },
    )


@router.get("/analytics/velocity", response_model=List[VelocityPointOut])
async def get_learning_velocity(
    service: Service,
    user: CurrentUser,
    period: Literal["daily", "weekly", "monthly"] = "daily",
    days: Annotated[int, Query(ge=1, le=365)] = 30,
) -> List[VelocityPointOut]:
    with _scheduling_errors():
        velocity = await service.get_learning_velocity(user.id, period=period, days=days)
    return [VelocityPointOut(**point) for point in velocity]


@router.get("/analytics/difficult-cards", response_model=List[DifficultCardOut])
async def get_difficult_cards(
    service: Service,
    user: CurrentUser,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> List[DifficultCardOut]:
    with _scheduling_errors():
        found = await service.get_difficult_cards(user.id, limit=limit)
    return [
        DifficultCardOut(
            card=CardOut.model_validate(item["card"]),
            failure_rate=item["failure_rate"],
            consecutive_failures=item["consecutive_failures"],
            suggested_action=item["suggested_action"],
        )
        for item in found
    ]
