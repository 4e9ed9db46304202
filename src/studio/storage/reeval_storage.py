"""
Re-evaluation Queue Storage

PostgreSQL storage for the BIP re-evaluation queue (reeval_queue).
"""
import asyncpg
import logging
from datetime import date, datetime
from typing import Optional, List
from uuid import UUID

from .base import BaseStorage
from ..models.signal import QueueStatus, ReEvalItem, ReEvalTrigger

logger = logging.getLogger("studio.storage.reeval")


class ReEvalStorage(BaseStorage):
    """
    Queue of BIP re-evaluations.

    A partial unique index on (bip_id) WHERE status = 'pending' keeps at most
    one pending item per BIP.
    """

    async def enqueue(self, trigger: ReEvalTrigger) -> bool:
        """Queue a trigger; False when the BIP already has a pending item"""
        query = """
            INSERT INTO reeval_queue (bip_id, reason, priority, source_id, status)
            VALUES ($1, $2, $3, $4, 'pending')
        """
        try:
            await self.execute(query, trigger.bip_id, trigger.reason, trigger.priority, trigger.source_id)
        except asyncpg.UniqueViolationError:
            return False
        return True

    async def count_completed_since(self, since: date) -> int:
        query = """
            SELECT COUNT(*) FROM reeval_queue
            WHERE status = 'completed' AND completed_at >= $1
        """
        return await self.fetchval(query, datetime.combine(since, datetime.min.time()))

    async def next_pending(self, limit: int) -> List[ReEvalItem]:
        """Pending items, highest priority then oldest first"""
        query = """
            SELECT * FROM reeval_queue
            WHERE status = 'pending'
            ORDER BY priority DESC, created_at ASC
            LIMIT $1
        """
        rows = await self.fetch(query, limit)
        return [self._row_to_item(row) for row in rows]

    async def mark_processing(self, item_id: UUID, attempts: int) -> None:
        query = "UPDATE reeval_queue SET status = 'processing', attempts = $2 WHERE id = $1"
        await self.execute(query, item_id, attempts)

    async def mark_completed(self, item_id: UUID) -> None:
        query = """
            UPDATE reeval_queue
            SET status = 'completed', completed_at = $2, last_error = NULL
            WHERE id = $1
        """
        await self.execute(query, item_id, datetime.utcnow())

    async def mark_pending(self, item_id: UUID, error: str) -> None:
        query = "UPDATE reeval_queue SET status = 'pending', last_error = $2 WHERE id = $1"
        await self.execute(query, item_id, error)

    async def mark_failed(self, item_id: UUID, error: Optional[str]) -> None:
        query = """
            UPDATE reeval_queue
            SET status = 'failed', last_error = COALESCE($2, last_error), completed_at = $3
            WHERE id = $1
        """
        await self.execute(query, item_id, error, datetime.utcnow())

    async def list_recent(self, limit: int = 50) -> List[ReEvalItem]:
        rows = await self.fetch("SELECT * FROM reeval_queue ORDER BY created_at DESC LIMIT $1", limit)
        return [self._row_to_item(row) for row in rows]

    def _row_to_item(self, row) -> ReEvalItem:
        return ReEvalItem(
            id=row["id"],
            bip_id=row["bip_id"],
            reason=row["reason"],
            priority=row["priority"],
            status=QueueStatus(row["status"]),
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            source_id=row["source_id"],
            last_error=row["last_error"],
            created_at=row["created_at"],
            completed_at=row["completed_at"],
        )
