"""
BIP Storage

PostgreSQL storage for BIP evaluations.
"""
import logging
from datetime import datetime
from typing import Optional, List

from .base import BaseStorage
from ..models.bip import BIPEvaluation, BIPRecommendation, BIPStatus
from ..models.threat import WorkflowStatus

logger = logging.getLogger("studio.storage.bip")


class BIPStorage(BaseStorage):
    """Storage for BIPEvaluation entities"""

    async def create(self, bip: BIPEvaluation) -> BIPEvaluation:
        query = """
            INSERT INTO bip_evaluations (
                id, bip_number, title, summary, recommendation, necessity_score,
                threats_addressed, mitigation_effectiveness, community_consensus,
                implementation_readiness, economic_impact, adoption_percentage,
                bip_status, status, last_evaluated_at, evaluation_trigger, last_updated
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
            RETURNING *
        """
        row = await self.fetchrow(query, *self._values(bip))
        return self._row_to_bip(row)

    async def get_by_id(self, bip_id: str) -> Optional[BIPEvaluation]:
        row = await self.fetchrow("SELECT * FROM bip_evaluations WHERE id = $1", bip_id)
        return self._row_to_bip(row) if row else None

    async def list(self, status: Optional[WorkflowStatus] = WorkflowStatus.PUBLISHED) -> List[BIPEvaluation]:
        query = """
            SELECT * FROM bip_evaluations
            WHERE ($1::text IS NULL OR status = $1)
            ORDER BY bip_number
        """
        rows = await self.fetch(query, status.value if status else None)
        return [self._row_to_bip(row) for row in rows]

    async def find_by_numbers(self, bip_numbers: List[str]) -> List[BIPEvaluation]:
        """BIP rows whose bip_number is one of the given spellings"""
        if not bip_numbers:
            return []
        query = "SELECT * FROM bip_evaluations WHERE bip_number = ANY($1::text[])"
        rows = await self.fetch(query, bip_numbers)
        return [self._row_to_bip(row) for row in rows]

    async def update(self, bip: BIPEvaluation) -> BIPEvaluation:
        bip.last_updated = datetime.utcnow()
        query = """
            UPDATE bip_evaluations
            SET bip_number = $2, title = $3, summary = $4, recommendation = $5,
                necessity_score = $6, threats_addressed = $7, mitigation_effectiveness = $8,
                community_consensus = $9, implementation_readiness = $10,
                economic_impact = $11, adoption_percentage = $12, bip_status = $13,
                status = $14, last_evaluated_at = $15, evaluation_trigger = $16,
                last_updated = $17
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(query, *self._values(bip))
        return self._row_to_bip(row) if row else None

    def _values(self, bip: BIPEvaluation) -> tuple:
        return (
            bip.id, bip.bip_number, bip.title, bip.summary, bip.recommendation.value,
            bip.necessity_score, bip.threats_addressed, bip.mitigation_effectiveness,
            bip.community_consensus, bip.implementation_readiness, bip.economic_impact,
            bip.adoption_percentage, bip.bip_status.value, bip.status.value,
            bip.last_evaluated_at, bip.evaluation_trigger, bip.last_updated,
        )

    def _row_to_bip(self, row) -> BIPEvaluation:
        return BIPEvaluation(
            id=row["id"],
            bip_number=row["bip_number"],
            title=row["title"],
            summary=row["summary"] or "",
            recommendation=BIPRecommendation(row["recommendation"]),
            necessity_score=row["necessity_score"],
            threats_addressed=list(row["threats_addressed"] or []),
            mitigation_effectiveness=row["mitigation_effectiveness"],
            community_consensus=row["community_consensus"],
            implementation_readiness=row["implementation_readiness"],
            economic_impact=row["economic_impact"] or "",
            adoption_percentage=row["adoption_percentage"],
            bip_status=BIPStatus(row["bip_status"]),
            status=WorkflowStatus(row["status"]),
            last_evaluated_at=row["last_evaluated_at"],
            evaluation_trigger=row["evaluation_trigger"],
            last_updated=row["last_updated"],
        )
