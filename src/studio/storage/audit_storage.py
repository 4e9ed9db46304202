"""
Audit Storage

PostgreSQL storage for security and compliance audit entries (audit_logs).
"""
import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from .base import BaseStorage, dump_json, load_json
from ..models.audit import AuditAction, AuditEntry

logger = logging.getLogger("studio.storage.audit")


class AuditStorage(BaseStorage):
    """Bulk writer and reader for audit_logs"""

    async def insert_many(self, entries: List[AuditEntry]) -> None:
        """Insert a batch of entries in one round trip"""
        if not entries:
            return
        query = """
            INSERT INTO audit_logs (
                id, user_id, action, resource, resource_id, details, ip_address,
                user_agent, success, error_message, data_category, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
        """
        await self.executemany(query, [
            (
                e.id, e.user_id, e.action.value, e.resource, e.resource_id,
                dump_json(e.details), e.ip_address, e.user_agent, e.success,
                e.error_message, e.data_category, e.created_at,
            )
            for e in entries
        ])

    async def query(
        self,
        user_id: Optional[UUID] = None,
        action: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        """Entries matching the filters, newest first"""
        query = """
            SELECT * FROM audit_logs
            WHERE ($1::uuid IS NULL OR user_id = $1)
              AND ($2::text IS NULL OR action = $2)
              AND ($3::timestamp IS NULL OR created_at >= $3)
              AND ($4::timestamp IS NULL OR created_at <= $4)
            ORDER BY created_at DESC
            LIMIT $5
        """
        rows = await self.fetch(query, user_id, action, start, end, limit)
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row) -> AuditEntry:
        return AuditEntry(
            id=row["id"],
            user_id=row["user_id"],
            action=AuditAction(row["action"]),
            resource=row["resource"],
            resource_id=row["resource_id"],
            details=load_json(row["details"], {}),
            ip_address=row["ip_address"],
            user_agent=row["user_agent"],
            success=row["success"],
            error_message=row["error_message"],
            data_category=row["data_category"],
            created_at=row["created_at"],
        )
