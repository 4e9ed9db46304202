"""
Workout Storage

PostgreSQL storage for logged workouts.
"""
import logging
from datetime import datetime
from typing import List
from uuid import UUID

from .base import BaseStorage
from ..models.workout import Workout

logger = logging.getLogger("studio.storage.workout")


class WorkoutStorage(BaseStorage):
    """Storage for Workout entities"""

    async def create(self, workout: Workout) -> Workout:
        query = """
            INSERT INTO workouts (
                id, user_id, quest_id, workout_type, title, duration_minutes,
                notes, xp_earned, completed_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            workout.id, workout.user_id, workout.quest_id, workout.workout_type,
            workout.title, workout.duration_minutes, workout.notes,
            workout.xp_earned, workout.completed_at
        )
        return self._row_to_workout(row)

    async def list_recent(self, user_id: UUID, limit: int = 20) -> List[Workout]:
        query = """
            SELECT * FROM workouts
            WHERE user_id = $1
            ORDER BY completed_at DESC
            LIMIT $2
        """
        rows = await self.fetch(query, user_id, limit)
        return [self._row_to_workout(row) for row in rows]

    async def count_since(self, user_id: UUID, since: datetime) -> int:
        query = "SELECT COUNT(*) FROM workouts WHERE user_id = $1 AND completed_at >= $2"
        return await self.fetchval(query, user_id, since)

    def _row_to_workout(self, row) -> Workout:
        return Workout(
            id=row["id"],
            user_id=row["user_id"],
            quest_id=row["quest_id"],
            workout_type=row["workout_type"],
            title=row["title"] or "",
            duration_minutes=row["duration_minutes"],
            notes=row["notes"],
            xp_earned=row["xp_earned"],
            completed_at=row["completed_at"],
        )
