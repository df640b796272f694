from __future__ import annotations

import logging

from src.scheduling.enums import Difficulty
from src.scheduling.quality import to_quality


def test_failure_always_maps_to_zero():
    assert to_quality(False) == 0
    for difficulty in (0, 1, 2, 3, 9):
        assert to_quality(False, difficulty) == 0


def test_success_mapping_by_difficulty():
    assert to_quality(True, Difficulty.HARD) == 3
    assert to_quality(True, Difficulty.GOOD) == 4
    assert to_quality(True, Difficulty.EASY) == 5


def test_success_without_difficulty_defaults_to_good():
    assert to_quality(True) == 4


def test_out_of_range_difficulty_is_clamped():
    assert to_quality(True, 7) == 5
    assert to_quality(True, -2) == 3


def test_again_with_success_scores_hard_and_warns(caplog):
    with caplog.at_level(logging.WARNING, logger="src.scheduling.quality"):
        assert to_quality(True, 0) == 3
    assert any("AGAIN" in record.getMessage() for record in caplog.records)
