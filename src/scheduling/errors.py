from __future__ import annotations


class SchedulingError(Exception):
    """Base class for errors surfaced by the scheduling core."""


class NotFoundError(SchedulingError, LookupError):
    pass


class CardNotFoundError(NotFoundError):
    def __init__(self, card_id: int) -> None:
        super().__init__(f"Card {card_id} not found")
        self.card_id = card_id


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: int) -> None:
        super().__init__(f"Review session {session_id} not found")
        self.session_id = session_id


class LearnerNotFoundError(NotFoundError):
    def __init__(self, owner_id: int) -> None:
        super().__init__(f"Learner {owner_id} not found")
        self.owner_id = owner_id


class InvalidStateError(SchedulingError, ValueError):
    pass


class InvalidInputError(SchedulingError, ValueError):
    pass


class ConcurrencyConflictError(SchedulingError):
    """A concurrent writer changed the same rows; retry the whole operation."""
