from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from src.db.models import StreakState
from src.scheduling.config import SchedulingConfig
from src.scheduling.dates import calendar_day_distance, ensure_aware


logger = logging.getLogger(__name__)


def empty_streak(owner_id: int, now: dt.datetime) -> StreakState:
    return StreakState(
        user_id=owner_id,
        current_streak=0,
        longest_streak=0,
        last_review_date=None,
        streak_updated_at=now,
    )


class StreakTracker:
    """Consecutive-calendar-day practice counter."""

    def __init__(self, config: Optional[SchedulingConfig] = None) -> None:
        self.config = config or SchedulingConfig()

    def record_activity(self, state: StreakState, now: dt.datetime) -> StreakState:
        """
        Register practice at ``now`` and update ``state`` in place.

        - first activity, or a gap of more than one day: streak restarts at 1
        - activity on the next calendar day: streak + 1
        - more activity on the same day: unchanged

        ``last_review_date`` and ``streak_updated_at`` are refreshed on every
        call, including the same-day case.
        """
        now = ensure_aware(now)
        current = state.current_streak or 0
        longest = state.longest_streak or 0

        if state.last_review_date is None:
            gap = None
        else:
            gap = calendar_day_distance(state.last_review_date, now, self.config.tzinfo)

        if gap is None or gap > 1:
            current = 1
        elif gap == 1:
            current += 1

        if current > longest:
            if longest > 0:
                logger.info(
                    "Learner %s reached a new longest streak of %s (was %s)",
                    state.user_id,
                    current,
                    longest,
                )
            longest = current

        state.current_streak = current
        state.longest_streak = longest
        state.last_review_date = now
        state.streak_updated_at = now
        return state
