from __future__ import annotations

import logging
from typing import Dict, Optional

from src.scheduling.enums import Difficulty


logger = logging.getLogger(__name__)


# SM-2 quality for a correct answer, keyed by the client's difficulty button.
# AGAIN only makes sense for a wrong answer; paired with success it is read
# as a low-confidence correct.
SUCCESS_QUALITY: Dict[Difficulty, int] = {
    Difficulty.AGAIN: 3,
    Difficulty.HARD: 3,
    Difficulty.GOOD: 4,
    Difficulty.EASY: 5,
}
FAILURE_QUALITY = 0
DEFAULT_SUCCESS_QUALITY = SUCCESS_QUALITY[Difficulty.GOOD]


def clamp_difficulty(difficulty: int) -> Difficulty:
    return Difficulty(max(int(Difficulty.AGAIN), min(int(Difficulty.EASY), int(difficulty))))


def to_quality(is_success: bool, difficulty: Optional[int] = None) -> int:
    """
    Convert a correct/incorrect signal plus optional difficulty (0-3)
    to the 0-5 quality scale consumed by ``SM2Scheduler``.
    """
    if not is_success:
        return FAILURE_QUALITY
    if difficulty is None:
        return DEFAULT_SUCCESS_QUALITY

    level = clamp_difficulty(difficulty)
    if level != difficulty:
        logger.warning("Difficulty %s out of range, clamped to %s", difficulty, int(level))
    if level is Difficulty.AGAIN:
        logger.warning("Difficulty AGAIN submitted with a correct answer; scoring as HARD")
    return SUCCESS_QUALITY[level]
