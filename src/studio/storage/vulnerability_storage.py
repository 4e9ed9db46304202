"""
Vulnerability Storage

PostgreSQL storage for vulnerabilities.
"""
import logging
from datetime import datetime
from typing import Optional, List, Sequence

from .base import BaseStorage, dump_json, load_json
from ..models.threat import AffectedComponent, Vulnerability, VulnerabilityStatus, WorkflowStatus

logger = logging.getLogger("studio.storage.vulnerability")


class VulnerabilityStorage(BaseStorage):
    """Storage for Vulnerability entities"""

    async def create(self, vuln: Vulnerability) -> Vulnerability:
        query = """
            INSERT INTO vulnerabilities (
                id, name, description, affected_components, severity, exploitability,
                vuln_status, related_bips, evidence_sources, status, submitted_by,
                submitted_by_name, created_at, last_updated
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            vuln.id, vuln.name, vuln.description, [c.value for c in vuln.affected_components],
            vuln.severity, vuln.exploitability, vuln.vuln_status.value, vuln.related_bips,
            dump_json(vuln.evidence_sources), vuln.status.value, vuln.submitted_by,
            vuln.submitted_by_name, vuln.created_at, vuln.last_updated
        )
        return self._row_to_vulnerability(row)

    async def get_by_id(self, vuln_id: str) -> Optional[Vulnerability]:
        row = await self.fetchrow("SELECT * FROM vulnerabilities WHERE id = $1", vuln_id)
        return self._row_to_vulnerability(row) if row else None

    async def list(
        self,
        statuses: Sequence[WorkflowStatus] = (WorkflowStatus.PUBLISHED,),
        vuln_status: Optional[str] = None,
    ) -> List[Vulnerability]:
        query = """
            SELECT * FROM vulnerabilities
            WHERE status = ANY($1::text[])
              AND ($2::text IS NULL OR vuln_status = $2)
            ORDER BY severity * exploitability DESC, last_updated DESC
        """
        rows = await self.fetch(query, [s.value for s in statuses], vuln_status)
        return [self._row_to_vulnerability(row) for row in rows]

    async def list_by_ids(self, vuln_ids: List[str]) -> List[Vulnerability]:
        if not vuln_ids:
            return []
        rows = await self.fetch("SELECT * FROM vulnerabilities WHERE id = ANY($1::text[])", vuln_ids)
        return [self._row_to_vulnerability(row) for row in rows]

    async def list_related_to_bip(self, bip_variants: List[str]) -> List[Vulnerability]:
        query = """
            SELECT * FROM vulnerabilities
            WHERE status IN ('published', 'under_review')
              AND related_bips && $1::text[]
        """
        rows = await self.fetch(query, bip_variants)
        return [self._row_to_vulnerability(row) for row in rows]

    async def update(self, vuln: Vulnerability) -> Vulnerability:
        vuln.last_updated = datetime.utcnow()
        query = """
            UPDATE vulnerabilities
            SET name = $2, description = $3, affected_components = $4, severity = $5,
                exploitability = $6, vuln_status = $7, related_bips = $8,
                evidence_sources = $9, status = $10, last_updated = $11
            WHERE id = $1
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            vuln.id, vuln.name, vuln.description, [c.value for c in vuln.affected_components],
            vuln.severity, vuln.exploitability, vuln.vuln_status.value, vuln.related_bips,
            dump_json(vuln.evidence_sources), vuln.status.value, vuln.last_updated
        )
        return self._row_to_vulnerability(row)

    async def delete(self, vuln_id: str) -> bool:
        result = await self.execute("DELETE FROM vulnerabilities WHERE id = $1", vuln_id)
        return "DELETE 1" in result

    def _row_to_vulnerability(self, row) -> Vulnerability:
        return Vulnerability(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            affected_components=[AffectedComponent(c) for c in (row["affected_components"] or [])],
            severity=row["severity"],
            exploitability=row["exploitability"],
            vuln_status=VulnerabilityStatus(row["vuln_status"]),
            related_bips=list(row["related_bips"] or []),
            evidence_sources=load_json(row["evidence_sources"], []),
            status=WorkflowStatus(row["status"]),
            submitted_by=row["submitted_by"],
            submitted_by_name=row["submitted_by_name"],
            created_at=row["created_at"],
            last_updated=row["last_updated"],
        )
