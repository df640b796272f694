"""
Upcoming-review forecast over the legacy interval ladder.

For every ACTIVE card the projection walks ``ReviewSchedule.intervals``
from the card's ``review_step`` onwards, anchored at its last review (or
creation), and buckets each projected date that falls inside the window by
calendar day. It answers "what does the next few weeks look like", not
"what is due now"; live due dates come from the SM-2 fields.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, List, Mapping, Optional, Sequence

from src.db.models import Card
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import ensure_aware, local_date, start_of_day
from src.scheduling.enums import CardStatus


logger = logging.getLogger(__name__)


@dataclass
class ProjectedItem:
    card_id: int
    word: str
    review_step: int
    projected_at: dt.datetime
    failure_count: int
    is_from_failure: bool
    is_future_review: bool


@dataclass
class ProjectionBucket:
    total: int = 0
    reviewed: int = 0
    not_reviewed: int = 0
    from_failure: int = 0
    items: List[ProjectedItem] = field(default_factory=list)

    def contains(self, card_id: int) -> bool:
        return any(item.card_id == card_id for item in self.items)


@dataclass
class Projection:
    start_date: dt.date
    end_date: dt.date
    intervals: List[int]
    buckets: Dict[dt.date, ProjectionBucket] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(bucket.total for bucket in self.buckets.values())


def _add_days(base: dt.datetime, days: int) -> Optional[dt.datetime]:
    try:
        return base + dt.timedelta(days=int(days))
    except (OverflowError, TypeError, ValueError):
        return None


class FutureProjector:
    def __init__(self, config: Optional[SchedulingConfig] = None) -> None:
        self.config = config or SchedulingConfig()

    def window(
        self,
        now: dt.datetime,
        start_offset_days: int,
        window_days: int,
    ) -> tuple[dt.date, dt.date]:
        today = local_date(now, self.config.tzinfo)
        start = today + dt.timedelta(days=start_offset_days)
        return start, start + dt.timedelta(days=max(0, window_days))

    def project(
        self,
        *,
        cards: Iterable[Card],
        intervals: Sequence[int],
        reviewed_dates: Mapping[int, AbstractSet[dt.date]],
        now: dt.datetime,
        start_offset_days: Optional[int] = None,
        window_days: Optional[int] = None,
    ) -> Projection:
        """
        Project every ladder step of every ACTIVE card into the window
        ``[today + start_offset_days, today + start_offset_days + window_days)``.

        ``reviewed_dates`` maps card id to the calendar dates on which the
        card has a logged review; an immediate projection landing on such a
        date counts as reviewed. Future-step projections never do.
        """
        cfg = self.config
        tz = cfg.tzinfo
        if start_offset_days is None:
            start_offset_days = cfg.upcoming_start_offset_days
        if window_days is None:
            window_days = cfg.upcoming_window_days
        ladder = [int(i) for i in intervals] or list(cfg.default_intervals)

        start_date, end_date = self.window(now, start_offset_days, window_days)
        window_start = start_of_day(start_date, tz)
        window_end = start_of_day(end_date, tz)
        projection = Projection(start_date=start_date, end_date=end_date, intervals=ladder)

        def _in_window(moment: dt.datetime) -> bool:
            return window_start <= moment < window_end

        def _bucket(day: dt.date) -> ProjectionBucket:
            return projection.buckets.setdefault(day, ProjectionBucket())

        for card in cards:
            if card.status != CardStatus.ACTIVE:
                continue
            base = card.last_reviewed or card.created_at
            if not isinstance(base, dt.datetime):
                continue
            base = ensure_aware(base)
            step = card.review_step if card.review_step is not None else 0
            failures = card.failure_count or 0

            current = ladder[step] if 0 <= step < len(ladder) else ladder[0]
            immediate = _add_days(base, current)
            if immediate is None:
                continue
            if _in_window(immediate):
                day = local_date(immediate, tz)
                bucket = _bucket(day)
                bucket.items.append(
                    ProjectedItem(
                        card_id=card.id,
                        word=card.word,
                        review_step=step,
                        projected_at=immediate,
                        failure_count=failures,
                        is_from_failure=failures > 0,
                        is_future_review=False,
                    )
                )
                bucket.total += 1
                if day in reviewed_dates.get(card.id, ()):
                    bucket.reviewed += 1
                else:
                    bucket.not_reviewed += 1
                    if failures > 0:
                        bucket.from_failure += 1

            for future_step, days in enumerate(ladder):
                if future_step <= step:
                    continue
                projected = _add_days(base, days)
                if projected is None or not _in_window(projected):
                    continue
                day = local_date(projected, tz)
                existing = projection.buckets.get(day)
                if existing is not None and existing.contains(card.id):
                    continue
                bucket = _bucket(day)
                bucket.items.append(
                    ProjectedItem(
                        card_id=card.id,
                        word=card.word,
                        review_step=future_step,
                        projected_at=projected,
                        failure_count=failures,
                        is_from_failure=False,
                        is_future_review=True,
                    )
                )
                bucket.total += 1
                bucket.not_reviewed += 1

        projection.buckets = dict(sorted(projection.buckets.items()))
        logger.debug(
            "Projected %s reviews over %s days (%s..%s)",
            projection.total,
            len(projection.buckets),
            start_date,
            end_date,
        )
        return projection
