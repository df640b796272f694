from __future__ import annotations

import datetime as dt
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from src.db.models import Card
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import ensure_aware
from src.scheduling.due_selector import DueCard, DueSelector, failure_rate
from src.scheduling.enums import CardStatus, SessionType
from src.scheduling.errors import CardNotFoundError, InvalidInputError, InvalidStateError


logger = logging.getLogger(__name__)


@dataclass
class DailySessionConfig:
    max_reviews: int = 50
    max_new_cards: int = 20
    prioritize_overdue: bool = True


@dataclass
class SessionPlan:
    """Cards chosen for a session, frozen as plain JSON-able dicts."""

    session_type: SessionType
    cards: List[Dict[str, Any]]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def card_ids(self) -> List[int]:
        return [entry["card_id"] for entry in self.cards]


def snapshot_entry(card: Card, *, is_overdue: bool, difficulty: float) -> Dict[str, Any]:
    return {
        "card_id": card.id,
        "word": card.word,
        "definition": card.definition,
        "next_review": ensure_aware(card.next_review).isoformat() if card.next_review else None,
        "interval": card.interval,
        "ease_factor": card.ease_factor,
        "success_count": card.success_count or 0,
        "failure_count": card.failure_count or 0,
        "is_overdue": is_overdue,
        "difficulty": round(difficulty, 4),
    }


class SessionAssembler:
    """
    Builds bounded practice plans from already-loaded cards.

    The plans are snapshots: once persisted, a session does not follow
    later changes to the cards it contains.
    """

    def __init__(self, config: Optional[SchedulingConfig] = None) -> None:
        self.config = config or SchedulingConfig()

    def plan_daily(
        self,
        due: Sequence[DueCard],
        *,
        options: Optional[DailySessionConfig] = None,
    ) -> Optional[SessionPlan]:
        """
        Plan today's session from the due list (already in priority order
        and normally already limited to ``max_reviews``).

        With ``prioritize_overdue`` up to ``overdue_share`` of the quota goes
        to overdue cards first and the rest is filled from the on-time ones;
        otherwise the due order is kept. Returns None when nothing is due.
        """
        options = options or DailySessionConfig(
            max_reviews=self.config.default_max_reviews,
            max_new_cards=self.config.default_max_new_cards,
        )
        if not due:
            return None

        max_reviews = max(0, options.max_reviews)
        overdue = [d for d in due if d.is_overdue]
        regular = [d for d in due if not d.is_overdue]

        if options.prioritize_overdue:
            overdue_quota = math.floor(max_reviews * self.config.overdue_share)
            chosen = overdue[:overdue_quota]
            chosen += regular[: max_reviews - len(chosen)]
        else:
            chosen = list(due[:max_reviews])

        entries = [
            snapshot_entry(d.card, is_overdue=d.is_overdue, difficulty=d.failure_rate)
            for d in chosen
        ]
        metadata = {
            "total_due": len(due),
            "overdue_available": len(overdue),
            "regular_available": len(regular),
            "overdue_selected": sum(1 for d in chosen if d.is_overdue),
            "max_reviews": options.max_reviews,
            "max_new_cards": options.max_new_cards,
            "prioritize_overdue": options.prioritize_overdue,
        }
        logger.debug("Planned daily session with %s of %s due cards", len(entries), len(due))
        return SessionPlan(session_type=SessionType.DAILY, cards=entries, metadata=metadata)

    def plan_failed(
        self,
        cards: Iterable[Card],
        *,
        now: dt.datetime,
        days: Optional[int] = None,
    ) -> Optional[SessionPlan]:
        """
        Plan a session of cards the learner is currently losing: failed at
        least once, reviewed in the last ``days`` days, and with no more
        successes than failures. Worst first, capped. None when empty.
        """
        if days is None:
            days = self.config.default_failed_days
        now = ensure_aware(now)
        since = now - dt.timedelta(days=days)

        candidates = [
            card
            for card in cards
            if card.status == CardStatus.ACTIVE
            and (card.failure_count or 0) > 0
            and card.last_reviewed is not None
            and ensure_aware(card.last_reviewed) >= since
            and (card.failure_count or 0) >= (card.success_count or 0)
        ]
        if not candidates:
            return None

        candidates.sort(key=lambda c: -(c.failure_count or 0))
        chosen = candidates[: self.config.failed_session_cap]
        entries = [
            snapshot_entry(
                card,
                is_overdue=ensure_aware(card.next_review) < now,
                difficulty=failure_rate(card),
            )
            for card in chosen
        ]
        metadata = {
            "days": days,
            "candidates": len(candidates),
        }
        return SessionPlan(session_type=SessionType.FAILED_CARDS, cards=entries, metadata=metadata)

    def plan_custom(
        self,
        cards_by_id: Mapping[int, Card],
        item_ids: Sequence[int],
        *,
        now: dt.datetime,
        max_cards: Optional[int] = None,
    ) -> SessionPlan:
        """Plan a session over caller-chosen cards, in the caller's order."""
        if not item_ids:
            raise InvalidInputError("item_ids must not be empty")

        now = ensure_aware(now)
        ordered: List[Card] = []
        seen: set[int] = set()
        for card_id in item_ids:
            if card_id in seen:
                continue
            seen.add(card_id)
            card = cards_by_id.get(card_id)
            if card is None:
                raise CardNotFoundError(card_id)
            ordered.append(card)

        # COMPLETED and PAUSED cards stay out of sessions until reactivated.
        active = [card for card in ordered if card.status == CardStatus.ACTIVE]
        if not active:
            raise InvalidStateError("None of the requested cards are in active review")
        skipped = len(ordered) - len(active)
        if max_cards is not None and max_cards > 0:
            active = active[:max_cards]

        annotated = [DueSelector.annotate(card, now) for card in active]
        return SessionPlan(
            session_type=SessionType.CUSTOM,
            cards=[
                snapshot_entry(d.card, is_overdue=d.is_overdue, difficulty=d.failure_rate)
                for d in annotated
            ],
            metadata={
                "requested": len(item_ids),
                "skipped_inactive": skipped,
                "max_cards": max_cards,
            },
        )
