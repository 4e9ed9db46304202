from datetime import date
from uuid import uuid4

import pytest

from studio.models.recovery import RecoveryLevel, RecoveryScore
from studio.services.progress import (
    check_level_up,
    next_streak,
    recommend,
    recovery_level,
    week_start,
    workout_xp,
    xp_for_level,
)


class TestLevels:
    def test_xp_for_level(self):
        assert xp_for_level(1) == 100
        assert xp_for_level(7) == 700

    def test_no_level_up(self):
        assert check_level_up(99, 1) == (1, 99, 0)

    def test_single_level_up(self):
        assert check_level_up(130, 1) == (2, 30, 1)

    def test_multiple_level_ups(self):
        # 100 for level 1, 200 for level 2, 300 for level 3
        assert check_level_up(650, 1) == (4, 50, 3)


class TestWorkoutXp:
    @pytest.mark.parametrize("minutes, xp", [(1, 50), (10, 55), (45, 70), (60, 80), (600, 200)])
    def test_workout_xp(self, minutes, xp):
        assert workout_xp(minutes) == xp


class TestStreaks:
    today = date(2026, 3, 11)

    def test_first_workout(self):
        assert next_streak(0, None, self.today) == 1

    def test_consecutive_day(self):
        assert next_streak(4, date(2026, 3, 10), self.today) == 5

    def test_same_day_keeps_streak(self):
        assert next_streak(4, self.today, self.today) == 4
        assert next_streak(0, self.today, self.today) == 1

    def test_gap_resets(self):
        assert next_streak(9, date(2026, 3, 8), self.today) == 1

    def test_week_start_is_monday(self):
        assert week_start(date(2026, 3, 11)) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 9)) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 15)) == date(2026, 3, 9)


class TestRecovery:
    @pytest.mark.parametrize(
        "score, level",
        [(0, RecoveryLevel.LOW), (33, RecoveryLevel.LOW), (34, RecoveryLevel.MEDIUM),
         (66, RecoveryLevel.MEDIUM), (67, RecoveryLevel.HIGH), (100, RecoveryLevel.HIGH)],
    )
    def test_recovery_level(self, score, level):
        assert recovery_level(score) == level

    def test_recommend_without_data(self):
        recommendation = recommend(None)
        assert recommendation.level == RecoveryLevel.HIGH
        assert recommendation.confidence == "none"

    def test_recommend_from_score(self):
        recommendation = recommend(RecoveryScore(user_id=uuid4(), score=40, source="whoop"))
        assert recommendation.level == RecoveryLevel.MEDIUM
        assert recommendation.score == 40
        assert recommendation.source == "whoop"
        assert recommendation.confidence == "data"
