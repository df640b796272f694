"""
Dependency wiring for the review API.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.session import get_db
from src.scheduling.config import SchedulingConfig
from src.scheduling.locks import LearnerLocks
from src.scheduling.review_service import ReviewService
from src.scheduling.store import SqlAlchemyReviewStore


def get_learner_locks(request: Request) -> LearnerLocks:
    return request.app.state.learner_locks


def get_scheduling_config(request: Request) -> SchedulingConfig:
    return request.app.state.scheduling_config


async def get_review_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    locks: Annotated[LearnerLocks, Depends(get_learner_locks)],
    config: Annotated[SchedulingConfig, Depends(get_scheduling_config)],
) -> ReviewService:
    """One service per request: a fresh store over the request's session, shared locks."""
    return ReviewService(SqlAlchemyReviewStore(db), locks=locks, config=config)
