"""
Recovery Storage

PostgreSQL storage for daily recovery scores.
"""
import logging
from typing import Optional
from uuid import UUID

from .base import BaseStorage, dump_json, load_json
from ..models.recovery import RecoveryScore

logger = logging.getLogger("studio.storage.recovery")


class RecoveryStorage(BaseStorage):
    """Storage for RecoveryScore entities"""

    async def upsert(self, score: RecoveryScore) -> RecoveryScore:
        """One score per (user, day, source); later submissions replace earlier ones"""
        query = """
            INSERT INTO user_recovery_scores (id, user_id, score, source, scored_date, raw_data, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (user_id, scored_date, source)
            DO UPDATE SET score = EXCLUDED.score, raw_data = EXCLUDED.raw_data
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            score.id, score.user_id, score.score, score.source,
            score.scored_date, dump_json(score.raw_data), score.created_at
        )
        return self._row_to_score(row)

    async def latest(self, user_id: UUID) -> Optional[RecoveryScore]:
        query = """
            SELECT * FROM user_recovery_scores
            WHERE user_id = $1
            ORDER BY scored_date DESC, created_at DESC
            LIMIT 1
        """
        row = await self.fetchrow(query, user_id)
        return self._row_to_score(row) if row else None

    def _row_to_score(self, row) -> RecoveryScore:
        return RecoveryScore(
            id=row["id"],
            user_id=row["user_id"],
            score=row["score"],
            source=row["source"],
            scored_date=row["scored_date"],
            raw_data=load_json(row["raw_data"]),
            created_at=row["created_at"],
        )
