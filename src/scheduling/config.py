"""
Configuration for the review scheduling engine.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


logger = logging.getLogger(__name__)


@dataclass
class SchedulingConfig:
    """Tunables shared by the interval model, selectors and assemblers."""

    default_intervals: Tuple[int, ...] = (1, 2, 7, 30, 365)

    initial_interval: int = 1
    initial_ease_factor: float = 2.5
    min_ease_factor: float = 1.3
    max_ease_factor: float = 3.0
    max_interval_days: int = 730
    failure_ease_penalty: float = 0.2

    completion_min_consecutive: int = 5
    completion_min_interval: int = 90

    overdue_share: float = 0.7
    failed_session_cap: int = 25
    default_failed_days: int = 7
    default_max_reviews: int = 50
    default_max_new_cards: int = 20

    upcoming_start_offset_days: int = -14
    upcoming_window_days: int = 7

    timezone: str = "UTC"
    _tz: Optional[ZoneInfo] = field(default=None, init=False, repr=False, compare=False)

    @property
    def tzinfo(self) -> ZoneInfo:
        if self._tz is None:
            try:
                self._tz = ZoneInfo(self.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning("Unknown timezone %r, falling back to UTC", self.timezone)
                self._tz = ZoneInfo("UTC")
        return self._tz


def load_scheduling_config() -> SchedulingConfig:
    """Build a config from the environment (only the timezone is env-driven)."""
    return SchedulingConfig(timezone=os.getenv("SCHEDULER_TIMEZONE", "UTC"))
