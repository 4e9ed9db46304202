"""
Threat Storage

PostgreSQL storage for threats.
"""
import logging
from datetime import datetime
from typing import Optional, List, Sequence

from .base import BaseStorage, dump_json, load_json
from ..models.threat import (
    AffectedComponent,
    FairEstimates,
    NistStage,
    StrideCategory,
    Threat,
    ThreatSource,
    ThreatStatus,
    WorkflowStatus,
)

logger = logging.getLogger("studio.storage.threat")

# Score field name (as sent by clients) -> column
SCORE_COLUMNS = {
    "likelihood": "likelihood",
    "impact": "impact",
    "fair_tef": "fair_tef",
    "fair_vulnerability": "fair_vulnerability",
    "fair_primary_loss_usd": "fair_primary_loss_usd",
    "fair_secondary_loss_usd": "fair_secondary_loss_usd",
}


class ThreatStorage(BaseStorage):
    """Storage for Threat entities"""

    async def create(self, threat: Threat) -> Threat:
        query = """
            INSERT INTO threats (
                id, name, description, stride_category, stride_rationale, threat_source,
                affected_components, vulnerability, exploit_scenario, likelihood,
                likelihood_justification, impact, impact_justification,
                fair_tef, fair_vulnerability, fair_primary_loss_usd, fair_secondary_loss_usd,
                nist_stage, rmf_status, remediation_strategies, related_bips,
                evidence_sources, vulnerability_ids, status, submitted_by,
                submitted_by_name, date_identified, last_updated
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                    $15, $16, $17, $18, $19, $20, $21, $22, $23, $24, $25, $26, $27, $28)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            threat.id, threat.name, threat.description, threat.stride_category.value,
            threat.stride_rationale, threat.threat_source.value,
            [c.value for c in threat.affected_components], threat.vulnerability,
            threat.exploit_scenario, threat.likelihood, threat.likelihood_justification,
            threat.impact, threat.impact_justification,
            threat.fair.threat_event_frequency, threat.fair.vulnerability,
            threat.fair.primary_loss_usd, threat.fair.secondary_loss_usd,
            threat.nist_stage.value, threat.rmf_status.value,
            dump_json(threat.remediation_strategies), threat.related_bips,
            dump_json(threat.evidence_sources), threat.vulnerability_ids,
            threat.status.value, threat.submitted_by, threat.submitted_by_name,
            threat.date_identified, threat.last_updated
        )
        return self._row_to_threat(row)

    async def get_by_id(self, threat_id: str) -> Optional[Threat]:
        row = await self.fetchrow("SELECT * FROM threats WHERE id = $1", threat_id)
        return self._row_to_threat(row) if row else None

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        stride: Optional[str] = None,
        source: Optional[str] = None,
        rmf_status: Optional[str] = None,
    ) -> List[Threat]:
        """Threats in the given workflow states, highest severity first"""
        query = """
            SELECT * FROM threats
            WHERE status = ANY($1::text[])
              AND ($2::text IS NULL OR stride_category = $2)
              AND ($3::text IS NULL OR threat_source = $3)
              AND ($4::text IS NULL OR rmf_status = $4)
            ORDER BY likelihood * impact DESC, last_updated DESC
        """
        rows = await self.fetch(query, [s.value for s in statuses], stride, source, rmf_status)
        return [self._row_to_threat(row) for row in rows]

    async def list_by_submitter(self, user_id: str) -> List[Threat]:
        """Every threat a user submitted, in any workflow state, newest first"""
        query = "SELECT * FROM threats WHERE submitted_by = $1 ORDER BY date_identified DESC"
        rows = await self.fetch(query, user_id)
        return [self._row_to_threat(row) for row in rows]

    async def list_related_to_bip(self, bip_variants: List[str]) -> List[Threat]:
        """Published or under-review threats referencing any of the BIP spellings"""
        query = """
            SELECT * FROM threats
            WHERE status IN ('published', 'under_review')
              AND related_bips && $1::text[]
            ORDER BY likelihood * impact DESC
        """
        rows = await self.fetch(query, bip_variants)
        return [self._row_to_threat(row) for row in rows]

    async def update(self, threat: Threat) -> Threat:
        threat.last_updated = datetime.utcnow()
        query = """
            UPDATE threats
            SET name = $2, description = $3, stride_category = $4, stride_rationale = $5,
                threat_source = $6, affected_components = $7, vulnerability = $8,
                exploit_scenario = $9, likelihood = $10, likelihood_justification = $11,
                impact = $12, impact_justification = $13, fair_tef = $14,
                fair_vulnerability = $15, fair_primary_loss_usd = $16,
                fair_secondary_loss_usd = $17, nist_stage = $18, rmf_status = $19,
                remediation_strategies = $20, related_bips = $21, evidence_sources = $22,
                vulnerability_ids = $23, status = $24, last_updated = $25
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            threat.id, threat.name, threat.description, threat.stride_category.value,
            threat.stride_rationale, threat.threat_source.value,
            [c.value for c in threat.affected_components], threat.vulnerability,
            threat.exploit_scenario, threat.likelihood, threat.likelihood_justification,
            threat.impact, threat.impact_justification,
            threat.fair.threat_event_frequency, threat.fair.vulnerability,
            threat.fair.primary_loss_usd, threat.fair.secondary_loss_usd,
            threat.nist_stage.value, threat.rmf_status.value,
            dump_json(threat.remediation_strategies), threat.related_bips,
            dump_json(threat.evidence_sources), threat.vulnerability_ids,
            threat.status.value, threat.last_updated
        )
        return self._row_to_threat(row)

    async def update_status(self, threat_id: str, status: WorkflowStatus) -> bool:
        query = "UPDATE threats SET status = $2, last_updated = $3 WHERE id = $1"
        result = await self.execute(query, threat_id, status.value, datetime.utcnow())
        return "UPDATE 1" in result

    async def update_score(self, threat_id: str, field: str, value: float) -> Optional[Threat]:
        """Set one scoring column; field must be a key of SCORE_COLUMNS"""
        column = SCORE_COLUMNS[field]
        query = f"""
            UPDATE threats SET {column} = $2, last_updated = $3
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(query, threat_id, value, datetime.utcnow())
        return self._row_to_threat(row) if row else None

    async def delete(self, threat_id: str) -> bool:
        result = await self.execute("DELETE FROM threats WHERE id = $1", threat_id)
        return "DELETE 1" in result

    def _row_to_threat(self, row) -> Threat:
        return Threat(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            stride_category=StrideCategory(row["stride_category"]),
            stride_rationale=row["stride_rationale"] or "",
            threat_source=ThreatSource(row["threat_source"]),
            affected_components=[AffectedComponent(c) for c in (row["affected_components"] or [])],
            vulnerability=row["vulnerability"] or "",
            exploit_scenario=row["exploit_scenario"] or "",
            likelihood=row["likelihood"],
            likelihood_justification=row["likelihood_justification"] or "",
            impact=row["impact"],
            impact_justification=row["impact_justification"] or "",
            fair=FairEstimates(
                threat_event_frequency=float(row["fair_tef"] or 0),
                vulnerability=float(row["fair_vulnerability"] or 0),
                primary_loss_usd=float(row["fair_primary_loss_usd"] or 0),
                secondary_loss_usd=float(row["fair_secondary_loss_usd"] or 0),
            ),
            nist_stage=NistStage(row["nist_stage"]),
            rmf_status=ThreatStatus(row["rmf_status"]),
            remediation_strategies=load_json(row["remediation_strategies"], []),
            related_bips=list(row["related_bips"] or []),
            evidence_sources=load_json(row["evidence_sources"], []),
            vulnerability_ids=list(row["vulnerability_ids"] or []),
            status=WorkflowStatus(row["status"]),
            submitted_by=row["submitted_by"],
            submitted_by_name=row["submitted_by_name"],
            date_identified=row["date_identified"],
            last_updated=row["last_updated"],
        )
