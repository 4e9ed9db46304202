"""
Fitness Service

Profile edits, XP, workouts, recovery scores, daily quests and the
dashboard for the gamified fitness app. Guilds live in guild_service.
"""
from __future__ import annotations

import logging
import random
import re
from datetime import date, datetime
from typing import List, Optional, Tuple, TYPE_CHECKING
from uuid import UUID

from ..models.quest import DailyQuestAssignment
from ..models.recovery import RECOVERY_TIER_ORDER, RecoveryRecommendation, RecoveryScore
from ..models.user import User
from ..models.workout import Workout
from . import progress
from .errors import ConflictError, NotFoundError

if TYPE_CHECKING:
    from ..storage.quest_storage import QuestStorage
    from ..storage.recovery_storage import RecoveryStorage
    from ..storage.user_storage import UserStorage
    from ..storage.workout_storage import WorkoutStorage

logger = logging.getLogger("studio.services.fitness")

BODY_TYPES = ("ectomorph", "mesomorph", "endomorph")
GENDERS = ("male", "female", "non_binary", "prefer_not_to_say")
FITNESS_GOALS = ("lose_weight", "build_muscle", "maintain", "endurance")
MEASUREMENT_KEYS = ("chest_cm", "waist_cm", "hips_cm", "shoulders_cm", "arm_cm", "thigh_cm")

URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)


def _number_in(value, low: float, high: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return low <= value <= high


def _age_on(birth: date, today: date) -> int:
    return today.year - birth.year - ((today.month, today.day) < (birth.month, birth.day))


def validate_profile(data: dict, today: Optional[date] = None) -> Tuple[dict, List[str]]:
    """
    Check whitelisted profile fields.

    Returns:
        (clean fields, error messages); unknown keys are ignored
    """
    today = today or date.today()
    clean = {}
    errors = []

    if "display_name" in data:
        name = str(data["display_name"] or "").strip()
        if 1 <= len(name) <= 50:
            clean["display_name"] = name
        else:
            errors.append("Display name must be 1-50 characters")

    if "avatar_url" in data:
        url = data["avatar_url"]
        if url is None or (isinstance(url, str) and URL_PATTERN.match(url)):
            clean["avatar_url"] = url
        else:
            errors.append("Avatar URL must be an http(s) URL")

    if "height_cm" in data:
        if _number_in(data["height_cm"], 50, 300):
            clean["height_cm"] = float(data["height_cm"])
        else:
            errors.append("Height must be between 50 and 300 cm")

    if "weight_kg" in data:
        if _number_in(data["weight_kg"], 20, 500):
            clean["weight_kg"] = float(data["weight_kg"])
        else:
            errors.append("Weight must be between 20 and 500 kg")

    for key, allowed, label in (
        ("body_type", BODY_TYPES, "Body type"),
        ("gender", GENDERS, "Gender"),
        ("fitness_goal", FITNESS_GOALS, "Fitness goal"),
    ):
        if key in data:
            if data[key] in allowed:
                clean[key] = data[key]
            else:
                errors.append(f"{label} must be one of: {', '.join(allowed)}")

    if "date_of_birth" in data:
        try:
            birth = date.fromisoformat(str(data["date_of_birth"]))
        except ValueError:
            errors.append("Date of birth must be an ISO date (YYYY-MM-DD)")
        else:
            if 13 <= _age_on(birth, today) <= 150:
                clean["date_of_birth"] = birth
            else:
                errors.append("Age must be between 13 and 150")

    if "body_measurements" in data:
        measurements = data["body_measurements"]
        if not isinstance(measurements, dict):
            errors.append("Body measurements must be an object")
        else:
            bad = [
                key for key, value in measurements.items()
                if key not in MEASUREMENT_KEYS or not _number_in(value, 10, 300)
            ]
            if bad:
                errors.append(f"Invalid body measurements: {', '.join(sorted(bad))}")
            else:
                clean["body_measurements"] = measurements

    return clean, errors


class FitnessService:
    """Fitness game operations for one user at a time"""

    def __init__(
        self,
        user_storage: UserStorage,
        workout_storage: WorkoutStorage,
        recovery_storage: RecoveryStorage,
        quest_storage: QuestStorage,
    ):
        self.user_storage = user_storage
        self.workout_storage = workout_storage
        self.recovery_storage = recovery_storage
        self.quest_storage = quest_storage

    async def _user(self, user_id: UUID) -> User:
        user = await self.user_storage.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    # ============================================
    # Profile
    # ============================================

    async def get_profile(self, user_id: UUID) -> User:
        return await self._user(user_id)

    async def update_profile(self, user_id: UUID, data: dict) -> User:
        """
        Raises:
            ValueError: Validation errors joined with ". ", or no valid fields
        """
        clean, errors = validate_profile(data or {})
        if errors:
            raise ValueError(". ".join(errors))
        if not clean:
            raise ValueError("No valid fields to update")

        user = await self.user_storage.update_profile(user_id, clean)
        if not user:
            raise NotFoundError("User not found")
        logger.info(f"Updated profile for {user_id}: {', '.join(clean)}")
        return user

    # ============================================
    # XP
    # ============================================

    async def add_xp(self, user_id: UUID, amount: int) -> dict:
        """Award XP, apply level-ups and count it towards this week"""
        _, award = await self._award(user_id, amount)
        return award

    async def _award(self, user_id: UUID, amount: int, workout_day: Optional[date] = None) -> Tuple[User, dict]:
        """
        Add XP atomically; with workout_day the workout count and streak
        are advanced in the same update.
        """
        levels_gained = []

        def advance(user: User) -> None:
            if workout_day is not None:
                user.streak_count = progress.next_streak(user.streak_count, user.last_workout_date, workout_day)
                user.longest_streak = max(user.longest_streak, user.streak_count)
                user.last_workout_date = workout_day
            user.level, user.current_xp, gained = progress.check_level_up(user.current_xp, user.level)
            levels_gained.append(gained)

        user = await self.user_storage.add_progress(
            user_id, amount, workouts=1 if workout_day else 0, apply=advance
        )
        if not user:
            raise NotFoundError("User not found")
        await self.user_storage.add_weekly_xp(user_id, progress.week_start(), amount)

        gained = levels_gained[-1] if levels_gained else 0
        if gained:
            logger.info(f"User {user_id} reached level {user.level}")
        return user, {"xp_earned": amount, "levels_gained": gained, "new_level": user.level}

    # ============================================
    # Workouts
    # ============================================

    async def log_workout(
        self,
        user_id: UUID,
        workout_type: str,
        duration_minutes: int,
        title: str = "",
        notes: Optional[str] = None,
        quest_id: Optional[UUID] = None,
    ) -> dict:
        """
        Record a workout, award XP and update the streak.

        Returns:
            Workout fields plus {xp_earned, levels_gained, new_level}
        """
        workout_type = (workout_type or "").strip()
        if not workout_type:
            raise ValueError("workout_type is required")
        if not isinstance(duration_minutes, int) or not 1 <= duration_minutes <= 600:
            raise ValueError("duration_minutes must be between 1 and 600")

        await self._user(user_id)
        xp = progress.workout_xp(duration_minutes)
        workout = await self.workout_storage.create(Workout(
            user_id=user_id,
            workout_type=workout_type,
            duration_minutes=duration_minutes,
            title=title or workout_type,
            notes=notes,
            quest_id=quest_id,
            xp_earned=xp,
        ))

        user, award = await self._award(user_id, xp, workout_day=date.today())
        logger.info(f"Workout logged for {user_id}: {workout_type} {duration_minutes}min (+{xp} XP)")

        result = workout.to_dict()
        result.update(award)
        result["streak_count"] = user.streak_count
        return result

    async def recent_workouts(self, user_id: UUID, limit: int = 20) -> List[Workout]:
        return await self.workout_storage.list_recent(user_id, limit)

    # ============================================
    # Recovery
    # ============================================

    async def record_recovery(self, user_id: UUID, score: int, source: str = "manual",
                              raw_data: Optional[dict] = None) -> RecoveryScore:
        if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
            raise ValueError("score must be an integer between 0 and 100")
        return await self.recovery_storage.upsert(RecoveryScore(
            user_id=user_id,
            score=score,
            source=(source or "manual").strip() or "manual",
            raw_data=raw_data,
        ))

    async def recommendation(self, user_id: UUID) -> RecoveryRecommendation:
        return progress.recommend(await self.recovery_storage.latest(user_id))

    async def recovery_status(self, user_id: UUID) -> dict:
        latest = await self.recovery_storage.latest(user_id)
        return {
            "latest": latest.to_dict() if latest else None,
            "recommendation": progress.recommend(latest).to_dict(),
        }

    # ============================================
    # Quests
    # ============================================

    async def list_quests(self, difficulty: Optional[str] = None, category: Optional[str] = None,
                          recovery_level: Optional[str] = None):
        return await self.quest_storage.list_active(difficulty, category, recovery_level)

    async def daily_quests(self, user_id: UUID, today: Optional[date] = None) -> List[DailyQuestAssignment]:
        """Today's assignments, handing out one random quest per recovery tier if none exist"""
        today = today or date.today()
        assignments = await self.quest_storage.list_assignments(user_id, today)
        if assignments:
            return assignments

        new = []
        for tier in RECOVERY_TIER_ORDER:
            quests = await self.quest_storage.list_active(recovery_level=tier.value)
            if not quests:
                continue
            quest = random.choice(quests)
            new.append(DailyQuestAssignment(
                user_id=user_id, quest_id=quest.id, recovery_level=tier, assigned_date=today
            ))
        if new:
            await self.quest_storage.create_assignments(new)
            logger.info(f"Assigned {len(new)} daily quests to {user_id}")
        return await self.quest_storage.list_assignments(user_id, today)

    async def select_quest(self, user_id: UUID, quest_id: Optional[UUID]) -> None:
        if not quest_id:
            raise ValueError("quest_id is required")
        if not await self.quest_storage.select_assignment(user_id, date.today(), quest_id):
            raise NotFoundError("Quest not found in daily assignments")

    async def complete_quest(self, user_id: UUID, quest_id: UUID) -> dict:
        """
        Raises:
            NotFoundError: Quest not assigned today
            ConflictError: Already completed
        """
        today = date.today()
        assignments = await self.quest_storage.list_assignments(user_id, today)
        assignment = next((a for a in assignments if a.quest_id == quest_id), None)
        if not assignment:
            raise NotFoundError("Quest not found in daily assignments")
        if assignment.completed:
            raise ConflictError("Quest already completed")
        if not await self.quest_storage.complete_assignment(user_id, today, quest_id):
            raise ConflictError("Quest already completed")

        quest = assignment.quest or await self.quest_storage.get_by_id(quest_id)
        reward = quest.xp_reward if quest else 0
        award = await self.add_xp(user_id, reward)
        return {"quest_id": str(quest_id), "completed": True, **award}

    # ============================================
    # Dashboard
    # ============================================

    async def dashboard(self, user_id: UUID) -> dict:
        user = await self._user(user_id)
        quests = await self.daily_quests(user_id)
        recent = await self.workout_storage.list_recent(user_id, 5)
        monday = progress.week_start()
        weekly = await self.workout_storage.count_since(
            user_id, datetime.combine(monday, datetime.min.time())
        )
        return {
            "user": user.to_dict(),
            "daily_quests": [a.to_dict() for a in quests],
            "recent_workouts": [w.to_dict() for w in recent],
            "weekly_workouts": weekly,
            "recommendation": (await self.recommendation(user_id)).to_dict(),
        }
