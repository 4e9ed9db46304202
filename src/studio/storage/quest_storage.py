"""
Quest Storage

PostgreSQL storage for the quest catalogue and daily quest assignments.
"""
import logging
from datetime import date, datetime
from typing import Optional, List
from uuid import UUID

from .base import BaseStorage, dump_json, load_json
from ..models.quest import DailyQuestAssignment, Quest, QuestCategory, QuestDifficulty
from ..models.recovery import RecoveryLevel

logger = logging.getLogger("studio.storage.quest")


class QuestStorage(BaseStorage):
    """Storage for Quest and DailyQuestAssignment entities"""

    async def list_active(
        self,
        difficulty: Optional[str] = None,
        category: Optional[str] = None,
        recovery_level: Optional[str] = None,
    ) -> List[Quest]:
        query = """
            SELECT * FROM quests
            WHERE is_active = true
              AND ($1::text IS NULL OR difficulty = $1)
              AND ($2::text IS NULL OR category = $2)
              AND ($3::text IS NULL OR recovery_level = $3)
            ORDER BY
                CASE difficulty
                    WHEN 'beginner' THEN 1 WHEN 'intermediate' THEN 2
                    WHEN 'advanced' THEN 3 ELSE 4
                END,
                title
        """
        rows = await self.fetch(query, difficulty, category, recovery_level)
        return [self._row_to_quest(row) for row in rows]

    async def get_by_id(self, quest_id: UUID) -> Optional[Quest]:
        row = await self.fetchrow("SELECT * FROM quests WHERE id = $1", quest_id)
        return self._row_to_quest(row) if row else None

    async def create(self, quest: Quest) -> Quest:
        query = """
            INSERT INTO quests (
                id, title, description, category, difficulty, recovery_level,
                xp_reward, exercises, estimated_minutes, is_active, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            quest.id, quest.title, quest.description, quest.category.value,
            quest.difficulty.value, quest.recovery_level.value, quest.xp_reward,
            dump_json(quest.exercises), quest.estimated_minutes, quest.is_active,
            quest.created_at
        )
        return self._row_to_quest(row)

    async def list_assignments(self, user_id: UUID, day: date) -> List[DailyQuestAssignment]:
        """The user's assignments for a day, each with its quest attached"""
        query = """
            SELECT a.*, q.title, q.description, q.category, q.difficulty,
                   q.recovery_level AS quest_recovery_level, q.xp_reward, q.exercises,
                   q.estimated_minutes, q.is_active, q.created_at AS quest_created_at
            FROM daily_quest_assignments a
            JOIN quests q ON q.id = a.quest_id
            WHERE a.user_id = $1 AND a.assigned_date = $2
            ORDER BY CASE a.recovery_level WHEN 'low' THEN 1 WHEN 'medium' THEN 2 ELSE 3 END
        """
        rows = await self.fetch(query, user_id, day)
        return [self._row_to_assignment(row) for row in rows]

    async def create_assignments(self, assignments: List[DailyQuestAssignment]) -> None:
        query = """
            INSERT INTO daily_quest_assignments (
                id, user_id, quest_id, assigned_date, recovery_level, selected, completed
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id, quest_id, assigned_date) DO NOTHING
        """
        await self.executemany(query, [
            (a.id, a.user_id, a.quest_id, a.assigned_date, a.recovery_level.value, a.selected, a.completed)
            for a in assignments
        ])

    async def select_assignment(self, user_id: UUID, day: date, quest_id: UUID) -> bool:
        """Deselect every assignment of the day, then select one; False if it was not assigned"""
        async with self._pool().acquire() as conn:
            async with conn.transaction():
                exists = await conn.fetchval(
                    """
                    SELECT 1 FROM daily_quest_assignments
                    WHERE user_id = $1 AND assigned_date = $2 AND quest_id = $3
                    """,
                    user_id, day, quest_id
                )
                if not exists:
                    return False
                await conn.execute(
                    "UPDATE daily_quest_assignments SET selected = false WHERE user_id = $1 AND assigned_date = $2",
                    user_id, day
                )
                await conn.execute(
                    """
                    UPDATE daily_quest_assignments SET selected = true
                    WHERE user_id = $1 AND assigned_date = $2 AND quest_id = $3
                    """,
                    user_id, day, quest_id
                )
        return True

    async def complete_assignment(self, user_id: UUID, day: date, quest_id: UUID) -> bool:
        """Mark an open assignment completed; False if missing or already completed"""
        query = """
            UPDATE daily_quest_assignments
            SET completed = true, selected = true, completed_at = $4
            WHERE user_id = $1 AND assigned_date = $2 AND quest_id = $3 AND completed = false
        """
        result = await self.execute(query, user_id, day, quest_id, datetime.utcnow())
        return "UPDATE 1" in result

    def _row_to_quest(self, row) -> Quest:
        return Quest(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            category=QuestCategory(row["category"]),
            difficulty=QuestDifficulty(row["difficulty"]),
            recovery_level=RecoveryLevel(row["recovery_level"]),
            xp_reward=row["xp_reward"],
            exercises=load_json(row["exercises"], []),
            estimated_minutes=row["estimated_minutes"],
            is_active=row["is_active"],
            created_at=row["created_at"],
        )

    def _row_to_assignment(self, row) -> DailyQuestAssignment:
        quest = Quest(
            id=row["quest_id"],
            title=row["title"],
            description=row["description"] or "",
            category=QuestCategory(row["category"]),
            difficulty=QuestDifficulty(row["difficulty"]),
            recovery_level=RecoveryLevel(row["quest_recovery_level"]),
            xp_reward=row["xp_reward"],
            exercises=load_json(row["exercises"], []),
            estimated_minutes=row["estimated_minutes"],
            is_active=row["is_active"],
            created_at=row["quest_created_at"],
        )
        return DailyQuestAssignment(
            id=row["id"],
            user_id=row["user_id"],
            quest_id=row["quest_id"],
            recovery_level=RecoveryLevel(row["recovery_level"]),
            assigned_date=row["assigned_date"],
            selected=row["selected"],
            completed=row["completed"],
            completed_at=row["completed_at"],
            quest=quest,
        )
