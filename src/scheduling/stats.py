from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from src.db.models import Card, ReviewEvent
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import day_bounds, ensure_aware, local_date
from src.scheduling.enums import CardStatus
from src.scheduling.errors import InvalidInputError


VELOCITY_PERIODS = ("daily", "weekly", "monthly")
DIFFICULT_MIN_REVIEWS = 3
DIFFICULT_MIN_FAILURE_RATE = 0.3


def compute_stats(
    *,
    cards: Sequence[Card],
    events: Iterable[ReviewEvent],
    now: Optional[dt.datetime] = None,
    config: Optional[SchedulingConfig] = None,
) -> dict:
    """
    Deck-level statistics for one learner.

    Returns a dict with keys:
        total_cards, active_cards, completed_cards, paused_cards,
        success_rate, challenging_cards, reviews_today,
        total_reviews, total_success, total_failures
    """
    config = config or SchedulingConfig()
    now = ensure_aware(now or dt.datetime.now(dt.timezone.utc))
    start, end = day_bounds(now, config.tzinfo)

    by_status = {status: 0 for status in CardStatus}
    total_success = 0
    total_failures = 0
    challenging = 0
    for card in cards:
        by_status[CardStatus(card.status)] += 1
        total_success += card.success_count or 0
        total_failures += card.failure_count or 0
        if card.status == CardStatus.ACTIVE and (card.failure_count or 0) > (card.success_count or 0):
            challenging += 1

    total_reviews = total_success + total_failures
    reviews_today = sum(
        1 for event in events if start <= ensure_aware(event.created_at) < end
    )

    return {
        "total_cards": len(cards),
        "active_cards": by_status[CardStatus.ACTIVE],
        "completed_cards": by_status[CardStatus.COMPLETED],
        "paused_cards": by_status[CardStatus.PAUSED],
        "success_rate": round(total_success / total_reviews * 100) if total_reviews else 0,
        "challenging_cards": challenging,
        "reviews_today": reviews_today,
        "total_reviews": total_reviews,
        "total_success": total_success,
        "total_failures": total_failures,
    }


def review_history(
    *,
    cards: Iterable[Card],
    start: dt.datetime,
    end: dt.datetime,
    config: Optional[SchedulingConfig] = None,
) -> dict:
    """
    Cards last reviewed within ``[start, end]``, newest first, with totals
    and the same cards grouped by calendar date of their last review.
    """
    config = config or SchedulingConfig()
    start = ensure_aware(start)
    end = ensure_aware(end)

    reviewed: List[Card] = [
        card
        for card in cards
        if card.last_reviewed is not None and start <= ensure_aware(card.last_reviewed) <= end
    ]
    reviewed.sort(key=lambda c: ensure_aware(c.last_reviewed), reverse=True)

    total_success = sum(card.success_count or 0 for card in reviewed)
    total_failures = sum(card.failure_count or 0 for card in reviewed)
    total_reviews = total_success + total_failures

    by_date: Dict[dt.date, List[Card]] = {}
    for card in reviewed:
        by_date.setdefault(local_date(card.last_reviewed, config.tzinfo), []).append(card)

    return {
        "cards": reviewed,
        "statistics": {
            "total_reviews": total_reviews,
            "total_success": total_success,
            "total_failures": total_failures,
            "average_success_rate": (total_success / total_reviews * 100) if total_reviews else 0.0,
        },
        "reviews_by_date": by_date,
    }


def _period_key(day: dt.date, period: str) -> str:
    if period == "weekly":
        # Weeks start on Sunday.
        return (day - dt.timedelta(days=(day.weekday() + 1) % 7)).isoformat()
    if period == "monthly":
        return f"{day.year}-{day.month:02d}"
    return day.isoformat()


def learning_velocity(
    reviews_by_date: Mapping[dt.date, Sequence[Card]],
    period: str = "daily",
) -> List[Dict[str, Any]]:
    """
    Group a review history into daily, weekly or monthly buckets.

    Each bucket counts the cards last reviewed in it, the reviews those
    cards have accumulated, and their success percentage. Buckets are
    returned oldest first.
    """
    if period not in VELOCITY_PERIODS:
        raise InvalidInputError(f"period must be one of: {', '.join(VELOCITY_PERIODS)}")

    buckets: Dict[str, Dict[str, int]] = {}
    for day, cards in reviews_by_date.items():
        bucket = buckets.setdefault(
            _period_key(day, period), {"cards": 0, "success": 0, "failures": 0}
        )
        bucket["cards"] += len(cards)
        bucket["success"] += sum(card.success_count or 0 for card in cards)
        bucket["failures"] += sum(card.failure_count or 0 for card in cards)

    velocity = []
    for key in sorted(buckets):
        bucket = buckets[key]
        reviews = bucket["success"] + bucket["failures"]
        velocity.append(
            {
                "period": key,
                "cards_reviewed": bucket["cards"],
                "reviews_completed": reviews,
                "accuracy": round(bucket["success"] / reviews * 100, 2) if reviews else 0.0,
            }
        )
    return velocity


def _suggested_action(failure_rate: float, consecutive_failures: int) -> str:
    if failure_rate > 0.7:
        return "break_down"
    if failure_rate > 0.5 and consecutive_failures >= 2:
        return "add_examples"
    if failure_rate > 0.4:
        return "practice_more"
    return "review_again"


def difficult_cards(cards: Iterable[Card], *, limit: int = 10) -> List[Dict[str, Any]]:
    """
    Cards with enough reviews and a failure rate above 30%, worst first.

    ``consecutive_failures`` is estimated from the counters: up to 3 when
    failures outnumber successes, else 0.
    """
    found = []
    for card in cards:
        success = card.success_count or 0
        failures = card.failure_count or 0
        total = success + failures
        if total < DIFFICULT_MIN_REVIEWS:
            continue
        rate = round(failures / total, 2)
        if rate <= DIFFICULT_MIN_FAILURE_RATE:
            continue
        streak = min(failures, 3) if failures > success else 0
        found.append(
            {
                "card": card,
                "failure_rate": rate,
                "consecutive_failures": streak,
                "suggested_action": _suggested_action(rate, streak),
            }
        )
    found.sort(key=lambda item: -item["failure_rate"])
    return found[: max(0, limit)]
