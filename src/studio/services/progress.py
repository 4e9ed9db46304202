"""
Progress rules for the fitness game: levels, workout XP, streaks and the
recovery-based intensity recommendation. Pure functions, no storage.
"""
from datetime import date, timedelta
from typing import Optional, Tuple

from ..models.recovery import RecoveryLevel, RecoveryRecommendation, RecoveryScore

MAX_WORKOUT_XP = 200
BASE_WORKOUT_XP = 50


def xp_for_level(level: int) -> int:
    """XP needed to advance from a level to the next one"""
    return 100 * level


def check_level_up(current_xp: int, level: int) -> Tuple[int, int, int]:
    """
    Apply level-ups for accumulated XP.

    Returns:
        (new_level, remaining_xp, levels_gained)
    """
    new_level = level
    remaining = current_xp
    while remaining >= xp_for_level(new_level):
        remaining -= xp_for_level(new_level)
        new_level += 1
    return new_level, remaining, new_level - level


def workout_xp(duration_minutes: int) -> int:
    return min(MAX_WORKOUT_XP, BASE_WORKOUT_XP + 5 * (duration_minutes // 10))


def week_start(day: Optional[date] = None) -> date:
    """Monday of the ISO week containing day"""
    day = day or date.today()
    return day - timedelta(days=day.weekday())


def next_streak(streak_count: int, last_workout_date: Optional[date], today: date) -> int:
    if last_workout_date == today:
        return max(streak_count, 1)
    if last_workout_date == today - timedelta(days=1):
        return streak_count + 1
    return 1


def recovery_level(score: int) -> RecoveryLevel:
    if score <= 33:
        return RecoveryLevel.LOW
    if score <= 66:
        return RecoveryLevel.MEDIUM
    return RecoveryLevel.HIGH


def recommend(latest: Optional[RecoveryScore]) -> RecoveryRecommendation:
    """Workout intensity for the latest recovery score; full intensity without data"""
    if latest is None:
        return RecoveryRecommendation(level=RecoveryLevel.HIGH)
    return RecoveryRecommendation(
        level=recovery_level(latest.score),
        score=latest.score,
        source=latest.source,
        confidence="data",
    )
