from __future__ import annotations

from enum import Enum, IntEnum


class CardStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    PAUSED = "PAUSED"


class SessionType(str, Enum):
    DAILY = "daily"
    CUSTOM = "custom"
    FAILED_CARDS = "failed_cards"


class Difficulty(IntEnum):
    """Four-button answer rating sent by clients alongside correct/incorrect."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3
