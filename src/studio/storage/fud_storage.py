"""
FUD Storage

PostgreSQL storage for FUD analyses.
"""
import logging
from datetime import datetime
from typing import Optional, List, Sequence

from .base import BaseStorage
from ..models.fud import FUDAnalysis, FUDCategory, FUDStatus
from ..models.threat import WorkflowStatus

logger = logging.getLogger("studio.storage.fud")


class FUDStorage(BaseStorage):
    """Storage for FUDAnalysis entities"""

    async def create(self, fud: FUDAnalysis) -> FUDAnalysis:
        query = """
            INSERT INTO fud_analyses (
                id, narrative, category, validity_score, fud_status, evidence_for,
                evidence_against, debunk_summary, related_threats, price_impact_estimate,
                status, submitted_by, submitted_by_name, last_seen, last_updated
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            fud.id, fud.narrative, fud.category.value, fud.validity_score,
            fud.fud_status.value, fud.evidence_for, fud.evidence_against,
            fud.debunk_summary, fud.related_threats, fud.price_impact_estimate,
            fud.status.value, fud.submitted_by, fud.submitted_by_name,
            fud.last_seen, fud.last_updated
        )
        return self._row_to_fud(row)

    async def get_by_id(self, fud_id: str) -> Optional[FUDAnalysis]:
        row = await self.fetchrow("SELECT * FROM fud_analyses WHERE id = $1", fud_id)
        return self._row_to_fud(row) if row else None

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        category: Optional[str] = None,
    ) -> List[FUDAnalysis]:
        query = """
            SELECT * FROM fud_analyses
            WHERE status = ANY($1::text[])
              AND ($2::text IS NULL OR category = $2)
            ORDER BY last_seen DESC
        """
        rows = await self.fetch(query, [s.value for s in statuses], category)
        return [self._row_to_fud(row) for row in rows]

    async def list_by_submitter(self, user_id: str) -> List[FUDAnalysis]:
        query = "SELECT * FROM fud_analyses WHERE submitted_by = $1 ORDER BY last_seen DESC"
        rows = await self.fetch(query, user_id)
        return [self._row_to_fud(row) for row in rows]

    async def update(self, fud: FUDAnalysis) -> FUDAnalysis:
        fud.last_updated = datetime.utcnow()
        query = """
            UPDATE fud_analyses
            SET narrative = $2, category = $3, validity_score = $4, fud_status = $5,
                evidence_for = $6, evidence_against = $7, debunk_summary = $8,
                related_threats = $9, price_impact_estimate = $10, status = $11,
                last_seen = $12, last_updated = $13
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            fud.id, fud.narrative, fud.category.value, fud.validity_score,
            fud.fud_status.value, fud.evidence_for, fud.evidence_against,
            fud.debunk_summary, fud.related_threats, fud.price_impact_estimate,
            fud.status.value, fud.last_seen, fud.last_updated
        )
        return self._row_to_fud(row)

    async def update_status(self, fud_id: str, status: WorkflowStatus) -> bool:
        query = "UPDATE fud_analyses SET status = $2, last_updated = $3 WHERE id = $1"
        result = await self.execute(query, fud_id, status.value, datetime.utcnow())
        return "UPDATE 1" in result

    def _row_to_fud(self, row) -> FUDAnalysis:
        return FUDAnalysis(
            id=row["id"],
            narrative=row["narrative"],
            category=FUDCategory(row["category"]),
            validity_score=row["validity_score"],
            fud_status=FUDStatus(row["fud_status"]),
            evidence_for=list(row["evidence_for"] or []),
            evidence_against=list(row["evidence_against"] or []),
            debunk_summary=row["debunk_summary"] or "",
            related_threats=list(row["related_threats"] or []),
            price_impact_estimate=row["price_impact_estimate"] or "",
            status=WorkflowStatus(row["status"]),
            submitted_by=row["submitted_by"],
            submitted_by_name=row["submitted_by_name"],
            last_seen=row["last_seen"],
            last_updated=row["last_updated"],
        )
