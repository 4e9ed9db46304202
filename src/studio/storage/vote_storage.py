"""
Vote Storage

PostgreSQL storage for community review votes.
"""
import logging
from typing import Optional
from uuid import UUID

from .base import BaseStorage
from ..models.vote import Vote, VoteSummary

logger = logging.getLogger("studio.storage.vote")


class VoteStorage(BaseStorage):
    """Storage for Vote entities, one per (target_type, target_id, user_id)"""

    async def upsert(self, vote: Vote) -> None:
        query = """
            INSERT INTO votes (id, target_type, target_id, user_id, user_name, vote_value, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            ON CONFLICT (target_type, target_id, user_id)
            DO UPDATE SET vote_value = EXCLUDED.vote_value, created_at = EXCLUDED.created_at
        """
        await self.execute(
            query,
            vote.id, vote.target_type.value, vote.target_id, vote.user_id,
            vote.user_name, vote.vote_value, vote.created_at
        )

    async def delete(self, target_type: str, target_id: str, user_id: UUID) -> bool:
        query = "DELETE FROM votes WHERE target_type = $1 AND target_id = $2 AND user_id = $3"
        result = await self.execute(query, target_type, target_id, user_id)
        return "DELETE 1" in result

    async def summary(self, target_type: str, target_id: str, user_id: Optional[UUID] = None) -> VoteSummary:
        """Approval and rejection tallies, plus the caller's own vote"""
        query = """
            SELECT
                COUNT(*) FILTER (WHERE vote_value > 0) AS approvals,
                COUNT(*) FILTER (WHERE vote_value < 0) AS rejections,
                MAX(vote_value) FILTER (WHERE user_id = $3) AS user_vote
            FROM votes
            WHERE target_type = $1 AND target_id = $2
        """
        row = await self.fetchrow(query, target_type, target_id, user_id)
        return VoteSummary(
            approvals=row["approvals"] or 0,
            rejections=row["rejections"] or 0,
            user_vote=row["user_vote"],
        )
