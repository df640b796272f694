from __future__ import annotations

import datetime as dt
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.db.types import UTCDateTime, utcnow
from src.scheduling.enums import CardStatus, SessionType


DEFAULT_SCHEDULE_INTERVALS = [1, 2, 7, 30, 365]


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    cards: Mapped[List["Card"]] = relationship(back_populates="owner")
    schedule: Mapped[Optional["ReviewSchedule"]] = relationship(back_populates="owner")
    streak: Mapped[Optional["StreakState"]] = relationship(back_populates="owner")


class ReviewSchedule(Base):
    """
    Legacy fixed interval ladder, one per learner.

    Used for the first due date of a new card and by the upcoming-review
    projection; live reviews use the SM-2 fields on ``Card`` instead.
    """

    __tablename__ = "review_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
        index=True,
    )
    intervals: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: list(DEFAULT_SCHEDULE_INTERVALS),
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False, default="Default Schedule")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    owner: Mapped["User"] = relationship(back_populates="schedule")


class Card(Base):
    """A learnable item together with its per-learner scheduling state."""

    __tablename__ = "cards"
    __table_args__ = (
        Index("ix_cards_user_status_next_review", "user_id", "status", "next_review"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    word: Mapped[str] = mapped_column(Text, nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus, name="card_status", native_enum=False, length=16),
        nullable=False,
        default=CardStatus.ACTIVE,
    )

    # Adaptive (SM-2) scheduling.
    interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    consecutive_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Index into ReviewSchedule.intervals, only read by the projection.
    review_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_reviewed: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    next_review: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    owner: Mapped["User"] = relationship(back_populates="cards")
    review_events: Mapped[List["ReviewEvent"]] = relationship(back_populates="card")

    __mapper_args__ = {"version_id_col": version}


class ReviewEvent(Base):
    """Append-only log of submitted review outcomes."""

    __tablename__ = "review_events"
    __table_args__ = (
        Index("ix_review_events_card_created", "card_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id"), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    is_success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-5
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    card: Mapped["Card"] = relationship(back_populates="review_events")


class ReviewSession(Base):
    """A fixed practice plan: the card snapshot is taken once at creation."""

    __tablename__ = "review_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    mode: Mapped[str] = mapped_column(String(32), nullable=False, default="flashcard")
    is_repeat: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    session_type: Mapped[SessionType] = mapped_column(
        Enum(SessionType, name="session_type", native_enum=False, length=16),
        nullable=False,
        default=SessionType.CUSTOM,
    )
    cards: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    results_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    started_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    completed_at: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)


class StreakState(Base):
    __tablename__ = "streak_states"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_streak_state_user"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_review_date: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    streak_updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )

    owner: Mapped["User"] = relationship(back_populates="streak")
