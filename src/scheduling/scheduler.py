from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from src.scheduling.config import SchedulingConfig


@runtime_checkable
class SupportsSM2State(Protocol):
    """
    Minimal protocol for SM-2 state.

    This lets us operate on ORM models (Card) or simple dataclasses in
    tests, as long as they expose the expected fields.
    """

    interval: int
    ease_factor: float
    consecutive_correct: int


@dataclass(frozen=True)
class SM2Result:
    interval: int
    ease_factor: float
    consecutive_correct: int


def clamp_quality(quality: float) -> int:
    """Round and clamp a recall quality into [0, 5]."""
    return max(0, min(5, int(round(quality))))


class SM2Scheduler:
    """
    Classic SM-2 spaced repetition scheduler.

    Adapted from the original SuperMemo-2 algorithm:

        - quality is an integer in [0, 5]; anything outside is clamped
        - quality < 3 is a failed recall: the streak of correct answers
          resets, the interval drops to one day and the ease factor is
          penalized
        - on success the interval grows 1 -> 6 -> interval * EF
        - interval is kept in [1, max_interval_days] days and the ease
          factor in [min_ease_factor, max_ease_factor]

    ``compute`` is pure: it never touches the state it is given.
    """

    def __init__(self, config: Optional[SchedulingConfig] = None) -> None:
        self.config = config or SchedulingConfig()

    def compute(self, state: SupportsSM2State, quality: float) -> SM2Result:
        cfg = self.config
        quality = clamp_quality(quality)

        interval = int(state.interval or cfg.initial_interval)
        ef = float(cfg.initial_ease_factor if state.ease_factor is None else state.ease_factor)
        correct = int(state.consecutive_correct or 0)

        if quality < 3:
            correct = 0
            interval = 1
            ef = max(cfg.min_ease_factor, ef - cfg.failure_ease_penalty)
        else:
            correct += 1
            if correct == 1:
                interval = 1
            elif correct == 2:
                interval = 6
            else:
                interval = round(interval * ef)

            q_delta = 5 - quality
            ef = ef + (0.1 - q_delta * (0.08 + q_delta * 0.02))
            ef = max(cfg.min_ease_factor, min(ef, cfg.max_ease_factor))

        interval = max(1, min(int(interval), cfg.max_interval_days))
        ef = max(cfg.min_ease_factor, min(ef, cfg.max_ease_factor))

        return SM2Result(
            interval=interval,
            ease_factor=round(ef, 2),
            consecutive_correct=correct,
        )
