from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import AbstractSet, Iterable, List, Optional

from src.db.models import Card
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import day_bounds, ensure_aware
from src.scheduling.enums import CardStatus


logger = logging.getLogger(__name__)


def failure_rate(card: Card) -> float:
    failures = card.failure_count or 0
    return failures / max(1, (card.success_count or 0) + failures)


@dataclass
class DueCard:
    """A due card plus the priority signals shown to clients."""

    card: Card
    is_overdue: bool
    failure_rate: float
    days_since_created: int


class DueSelector:
    """
    In-memory due-card selection.

    Like the other selectors in this package it is DB-agnostic: callers load
    the learner's cards and the ids of cards already reviewed today, and get
    back the ordered due list. Nothing is mutated.
    """

    def __init__(self, config: Optional[SchedulingConfig] = None) -> None:
        self.config = config or SchedulingConfig()

    def select(
        self,
        *,
        cards: Iterable[Card],
        reviewed_today: AbstractSet[int],
        now: dt.datetime,
        limit: Optional[int] = None,
    ) -> List[DueCard]:
        """
        Select the cards due for the calendar day containing ``now``.

        Filter:
        - status ACTIVE and next_review before the end of today;
        - no review logged today (an item is served at most once per day).

        Order: next_review ascending, then failure_count descending, then
        created_at ascending. ``limit`` truncates; None returns everything.
        """
        now = ensure_aware(now)
        _, end_of_day = day_bounds(now, self.config.tzinfo)

        due = [
            card
            for card in cards
            if card.status == CardStatus.ACTIVE
            and card.next_review is not None
            and ensure_aware(card.next_review) <= end_of_day
            and card.id not in reviewed_today
        ]
        due.sort(
            key=lambda c: (
                ensure_aware(c.next_review),
                -(c.failure_count or 0),
                ensure_aware(c.created_at),
            )
        )
        if limit is not None:
            due = due[: max(0, limit)]

        selected = [self.annotate(card, now) for card in due]
        logger.debug(
            "Selected %s due cards (%s overdue, limit=%s)",
            len(selected),
            sum(1 for d in selected if d.is_overdue),
            limit,
        )
        return selected

    @staticmethod
    def annotate(card: Card, now: dt.datetime) -> DueCard:
        created = ensure_aware(card.created_at)
        return DueCard(
            card=card,
            is_overdue=ensure_aware(card.next_review) < now,
            failure_rate=failure_rate(card),
            days_since_created=max(0, (now - created) // dt.timedelta(days=1)),
        )
