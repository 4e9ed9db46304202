"""
X Post Storage

PostgreSQL storage for the x_posts log used for dedup and rate limiting.
"""
import logging
from datetime import datetime
from typing import List
from uuid import UUID

from .base import BaseStorage
from ..models.x_post import XPost, XPostStatus

logger = logging.getLogger("studio.storage.x_post")


class XPostStorage(BaseStorage):
    """Storage for XPost entities"""

    async def create(self, post: XPost) -> XPost:
        query = """
            INSERT INTO x_posts (id, content, entity_type, entity_id, trigger, status, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            post.id, post.content, post.entity_type, post.entity_id,
            post.trigger, post.status.value, post.created_at
        )
        return self._row_to_post(row)

    async def mark_posted(self, post_id: UUID, x_post_id: str) -> None:
        query = "UPDATE x_posts SET status = 'posted', post_id = $2, posted_at = $3 WHERE id = $1"
        await self.execute(query, post_id, x_post_id, datetime.utcnow())

    async def mark_failed(self, post_id: UUID, error: str) -> None:
        query = "UPDATE x_posts SET status = 'failed', error_message = $2 WHERE id = $1"
        await self.execute(query, post_id, error)

    async def posted_since(self, entity_type: str, entity_id: str, since: datetime) -> bool:
        """Whether this entity was already posted after `since`"""
        query = """
            SELECT 1 FROM x_posts
            WHERE entity_type = $1 AND entity_id = $2 AND status = 'posted' AND created_at >= $3
            LIMIT 1
        """
        return await self.fetchval(query, entity_type, entity_id, since) is not None

    async def count_posted_since(self, since: datetime) -> int:
        query = "SELECT COUNT(*) FROM x_posts WHERE status = 'posted' AND created_at >= $1"
        return await self.fetchval(query, since)

    async def list_recent(self, limit: int = 50) -> List[XPost]:
        rows = await self.fetch("SELECT * FROM x_posts ORDER BY created_at DESC LIMIT $1", limit)
        return [self._row_to_post(row) for row in rows]

    def _row_to_post(self, row) -> XPost:
        return XPost(
            id=row["id"],
            content=row["content"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            trigger=row["trigger"],
            status=XPostStatus(row["status"]),
            post_id=row["post_id"],
            error_message=row["error_message"],
            created_at=row["created_at"],
            posted_at=row["posted_at"],
        )
