"""
Signal Storage

PostgreSQL storage for external threat signals and monitoring runs.
"""
import asyncpg
import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from .base import BaseStorage, dump_json, load_json
from ..models.signal import ExternalSignal, MonitoringRun, RunStatus, SignalSeverity, SignalSource

logger = logging.getLogger("studio.storage.signal")


class SignalStorage(BaseStorage):
    """Storage for ExternalSignal entities"""

    async def insert(self, signal: ExternalSignal) -> Optional[ExternalSignal]:
        """
        Insert a signal.

        Returns None when (source, external_id) already exists.
        """
        query = """
            INSERT INTO external_signals (
                id, source, external_id, source_url, title, description, severity,
                published_date, related_bips, cve_id, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING *
        """
        try:
            row = await self.fetchrow(
                query,
                signal.id, signal.source.value, signal.external_id, signal.source_url,
                signal.title, signal.description, signal.severity.value,
                signal.published_date, signal.related_bips, signal.cve_id, signal.created_at
            )
        except asyncpg.UniqueViolationError:
            return None
        return self._row_to_signal(row)

    async def list_recent(self, limit: int = 50) -> List[ExternalSignal]:
        query = "SELECT * FROM external_signals ORDER BY created_at DESC LIMIT $1"
        rows = await self.fetch(query, limit)
        return [self._row_to_signal(row) for row in rows]

    def _row_to_signal(self, row) -> ExternalSignal:
        return ExternalSignal(
            id=row["id"],
            source=SignalSource(row["source"]),
            external_id=row["external_id"],
            source_url=row["source_url"],
            title=row["title"],
            description=row["description"] or "",
            severity=SignalSeverity(row["severity"]),
            published_date=row["published_date"],
            related_bips=list(row["related_bips"] or []),
            cve_id=row["cve_id"],
            created_at=row["created_at"],
        )


class MonitoringStorage(BaseStorage):
    """Storage for MonitoringRun entities"""

    async def start(self, run_type: str) -> MonitoringRun:
        run = MonitoringRun(run_type=run_type)
        query = """
            INSERT INTO monitoring_runs (id, run_type, status, started_at)
            VALUES ($1, $2, $3, $4)
            RETURNING *
        """
        row = await self.fetchrow(query, run.id, run.run_type, run.status.value, run.started_at)
        return self._row_to_run(row)

    async def complete(self, run_id: UUID, result: dict) -> None:
        query = """
            UPDATE monitoring_runs
            SET status = $2, result = $3, completed_at = $4
            WHERE id = $1
        """
        await self.execute(query, run_id, RunStatus.COMPLETED.value, dump_json(result), datetime.utcnow())

    async def fail(self, run_id: UUID, error: str) -> None:
        query = """
            UPDATE monitoring_runs
            SET status = $2, error = $3, completed_at = $4
            WHERE id = $1
        """
        await self.execute(query, run_id, RunStatus.FAILED.value, error, datetime.utcnow())

    async def last_completed(self, run_type: str) -> Optional[MonitoringRun]:
        query = """
            SELECT * FROM monitoring_runs
            WHERE run_type = $1 AND status = 'completed'
            ORDER BY started_at DESC
            LIMIT 1
        """
        row = await self.fetchrow(query, run_type)
        return self._row_to_run(row) if row else None

    async def list_recent(self, limit: int = 20) -> List[MonitoringRun]:
        rows = await self.fetch("SELECT * FROM monitoring_runs ORDER BY started_at DESC LIMIT $1", limit)
        return [self._row_to_run(row) for row in rows]

    def _row_to_run(self, row) -> MonitoringRun:
        return MonitoringRun(
            id=row["id"],
            run_type=row["run_type"],
            status=RunStatus(row["status"]),
            result=load_json(row["result"]),
            error=row["error"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )
