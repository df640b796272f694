from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from src.scheduling.enums import CardStatus, SessionType


class CardCreateRequest(BaseModel):
    word: str = Field(..., min_length=1, description="Front of the card")
    definition: str = Field(..., min_length=1, description="Back of the card")


class CardOut(BaseModel):
    """A card with its current scheduling state."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    word: str
    definition: str
    status: CardStatus
    interval: int
    ease_factor: float
    consecutive_correct: int
    review_step: int
    view_count: int
    success_count: int
    failure_count: int
    last_reviewed: Optional[dt.datetime] = None
    next_review: dt.datetime
    created_at: dt.datetime


class CardIdsRequest(BaseModel):
    card_ids: List[int] = Field(..., min_length=1)


class CardIdsResponse(BaseModel):
    updated: int


class ReviewSubmitRequest(BaseModel):
    card_id: int
    is_success: bool
    difficulty: Optional[int] = Field(
        default=None,
        description="Optional answer rating: 0 again, 1 hard, 2 good, 3 easy. Out-of-range values are clamped.",
    )


class DueCardOut(BaseModel):
    card: CardOut
    is_overdue: bool
    failure_rate: float
    days_since_created: int


class DueTodayResponse(BaseModel):
    cards: List[DueCardOut] = Field(default_factory=list)
    total: int = Field(default=0, description="Number of cards due today before the limit")
    has_more: bool = False


class ProjectedItemOut(BaseModel):
    card_id: int
    word: str
    review_step: int
    projected_at: dt.datetime
    failure_count: int
    is_from_failure: bool
    is_future_review: bool


class ProjectionBucketOut(BaseModel):
    total: int
    reviewed: int
    not_reviewed: int
    from_failure: int
    items: List[ProjectedItemOut] = Field(default_factory=list)


class UpcomingResponse(BaseModel):
    start_date: dt.date
    end_date: dt.date
    intervals: List[int]
    total: int
    days: Dict[dt.date, ProjectionBucketOut] = Field(default_factory=dict)


class DailySessionRequest(BaseModel):
    max_reviews: int = Field(default=50, ge=0, le=500)
    max_new_cards: int = Field(default=20, ge=0, le=500)
    prioritize_overdue: bool = True


class FailedSessionRequest(BaseModel):
    days: int = Field(default=7, ge=1, le=365, description="Look-back window for recent failures")


class CustomSessionRequest(BaseModel):
    item_ids: List[int] = Field(default_factory=list)
    mode: Literal["flashcard", "multiple-choice"] = "flashcard"
    is_repeat: bool = False
    max_cards: Optional[int] = Field(default=None, ge=1)


class SessionResults(BaseModel):
    cards_reviewed: Optional[int] = Field(default=None, ge=0)
    correct_answers: Optional[int] = Field(default=None, ge=0)
    time_spent: Optional[int] = Field(default=None, ge=0, description="Seconds spent in the session")


class SessionCompleteRequest(BaseModel):
    results: Optional[SessionResults] = None


class ReviewSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_type: SessionType
    mode: str
    is_repeat: bool
    cards: List[Dict[str, Any]] = Field(default_factory=list)
    metadata_json: Optional[Dict[str, Any]] = None
    results_json: Optional[Dict[str, Any]] = None
    started_at: dt.datetime
    completed_at: Optional[dt.datetime] = None


class SessionProgressOut(BaseModel):
    total_cards: int
    reviewed_cards: int
    remaining_cards: int
    is_completed: bool


class StreakOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    current_streak: int
    longest_streak: int
    last_review_date: Optional[dt.datetime] = None
    streak_updated_at: Optional[dt.datetime] = None


class ScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    intervals: List[int]
    name: str
    description: Optional[str] = None
    is_default: bool


class ScheduleUpdateRequest(BaseModel):
    intervals: Optional[List[int]] = Field(
        default=None,
        description="Non-empty list of positive day offsets, e.g. [1, 2, 7, 30, 365]",
    )
    name: Optional[str] = None
    description: Optional[str] = None


class StatsResponse(BaseModel):
    total_cards: int
    active_cards: int
    completed_cards: int
    paused_cards: int
    success_rate: int = Field(..., description="Successful reviews as a rounded percentage")
    challenging_cards: int
    reviews_today: int
    total_reviews: int
    total_success: int
    total_failures: int


class HistoryStatistics(BaseModel):
    total_reviews: int
    total_success: int
    total_failures: int
    average_success_rate: float


class HistoryResponse(BaseModel):
    cards: List[CardOut] = Field(default_factory=list)
    statistics: HistoryStatistics
    reviews_by_date: Dict[dt.date, List[CardOut]] = Field(default_factory=dict)


class VelocityPointOut(BaseModel):
    period: str = Field(..., description="Date, week start date or YYYY-MM month")
    cards_reviewed: int
    reviews_completed: int
    accuracy: float = Field(..., description="Successful reviews as a percentage")


class DifficultCardOut(BaseModel):
    card: CardOut
    failure_rate: float
    consecutive_failures: int
    suggested_action: Literal["review_again", "break_down", "add_examples", "practice_more"]
