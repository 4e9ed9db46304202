"""
Snapshot Storage

PostgreSQL storage for daily risk snapshots (one row per UTC date).
"""
import logging
from datetime import date
from typing import List, Optional

from .base import BaseStorage, dump_json, load_json
from ..models.snapshot import RiskSnapshot

logger = logging.getLogger("studio.storage.snapshot")


class SnapshotStorage(BaseStorage):
    async def upsert(self, snapshot: RiskSnapshot) -> RiskSnapshot:
        """Insert or replace the snapshot for its date"""
        query = """
            INSERT INTO risk_snapshots (snapshot_date, stats, created_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (snapshot_date) DO UPDATE SET stats = EXCLUDED.stats, created_at = EXCLUDED.created_at
            RETURNING *
        """
        row = await self.fetchrow(query, snapshot.snapshot_date, dump_json(snapshot.stats), snapshot.created_at)
        return self._row_to_snapshot(row)

    async def get(self, snapshot_date: date) -> Optional[RiskSnapshot]:
        row = await self.fetchrow("SELECT * FROM risk_snapshots WHERE snapshot_date = $1", snapshot_date)
        return self._row_to_snapshot(row) if row else None

    async def list_since(self, since: date) -> List[RiskSnapshot]:
        """Snapshots on or after since, oldest first"""
        query = "SELECT * FROM risk_snapshots WHERE snapshot_date >= $1 ORDER BY snapshot_date"
        rows = await self.fetch(query, since)
        return [self._row_to_snapshot(row) for row in rows]

    def _row_to_snapshot(self, row) -> RiskSnapshot:
        return RiskSnapshot(
            snapshot_date=row["snapshot_date"],
            stats=load_json(row["stats"], {}),
            created_at=row["created_at"],
        )
