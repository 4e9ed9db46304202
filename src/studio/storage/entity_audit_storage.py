"""
Entity Audit Storage

Change history for risk content (audit_log table).
"""
import logging
from typing import Optional, List

from .base import BaseStorage, dump_json, load_json
from ..models.audit import EntityAuditEntry

logger = logging.getLogger("studio.storage.entity_audit")


class EntityAuditStorage(BaseStorage):
    """Append-only log of who changed which threat, vulnerability, BIP or FUD entry"""

    async def append(self, entry: EntityAuditEntry) -> EntityAuditEntry:
        query = """
            INSERT INTO audit_log (id, entity_type, entity_id, action, user_id, user_name, diff, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            entry.id, entry.entity_type, entry.entity_id, entry.action,
            entry.user_id, entry.user_name, dump_json(entry.diff), entry.created_at
        )
        return self._row_to_entry(row)

    async def list(self, entity_type: Optional[str] = None, limit: int = 50) -> List[EntityAuditEntry]:
        """Newest entries first, optionally for one entity type"""
        query = """
            SELECT * FROM audit_log
            WHERE ($1::text IS NULL OR entity_type = $1)
            ORDER BY created_at DESC
            LIMIT $2
        """
        rows = await self.fetch(query, entity_type, limit)
        return [self._row_to_entry(row) for row in rows]

    async def list_for_entity(self, entity_type: str, entity_id: str) -> List[EntityAuditEntry]:
        query = """
            SELECT * FROM audit_log
            WHERE entity_type = $1 AND entity_id = $2
            ORDER BY created_at DESC
        """
        rows = await self.fetch(query, entity_type, entity_id)
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row) -> EntityAuditEntry:
        return EntityAuditEntry(
            id=row["id"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            action=row["action"],
            user_id=row["user_id"],
            user_name=row["user_name"] or "",
            diff=load_json(row["diff"]),
            created_at=row["created_at"],
        )
