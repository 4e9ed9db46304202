"""
Risk Service

Business logic for the Bitcoin risk register: threats, vulnerabilities,
BIP evaluations and FUD analyses, plus the derived views (risks, matrix,
dashboard stats). Every write appends an entity audit row.
"""
from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple, TYPE_CHECKING

from ..models.audit import EntityAuditEntry
from ..models.bip import BIPEvaluation, BIPRecommendation, BIPStatus, PENDING_BIP_STATUSES
from ..models.fud import FUDAnalysis, FUDCategory, FUDStatus
from ..models.snapshot import RiskSnapshot
from ..models.threat import (
    AffectedComponent,
    FairEstimates,
    NistStage,
    REVIEWABLE_STATUSES,
    RiskRating,
    StrideCategory,
    Threat,
    ThreatSource,
    ThreatStatus,
    Vulnerability,
    VulnerabilityStatus,
    WorkflowStatus,
)
from ..storage.threat_storage import SCORE_COLUMNS
from . import scoring
from .errors import NotFoundError
from .x_posting import (
    format_fud_debunked_post,
    format_threat_post,
    format_vulnerability_post,
    format_weekly_summary_post,
)

if TYPE_CHECKING:
    from ..storage.bip_storage import BIPStorage
    from ..storage.entity_audit_storage import EntityAuditStorage
    from ..storage.fud_storage import FUDStorage
    from ..storage.snapshot_storage import SnapshotStorage
    from ..storage.threat_storage import ThreatStorage
    from ..storage.vulnerability_storage import VulnerabilityStorage
    from .x_posting import XPostingService

logger = logging.getLogger("studio.services.risk")

# Moving a vulnerability into one of these announces it on X
ANNOUNCED_VULN_STATUSES = (VulnerabilityStatus.CONFIRMED, VulnerabilityStatus.EXPLOITABLE)

_THREAT_ENUMS = {
    "stride_category": StrideCategory,
    "threat_source": ThreatSource,
    "nist_stage": NistStage,
    "rmf_status": ThreatStatus,
}
_THREAT_TEXT = (
    "name", "description", "stride_rationale", "vulnerability", "exploit_scenario",
    "likelihood_justification", "impact_justification",
)
_THREAT_LISTS = ("remediation_strategies", "related_bips", "evidence_sources", "vulnerability_ids")
BIP_SCORE_FIELDS = (
    "necessity_score", "mitigation_effectiveness", "community_consensus",
    "implementation_readiness", "adoption_percentage",
)
FUD_SCORE_FIELDS = ("validity_score",)


def _check_text(data: dict, name: str, limit: int, partial: bool) -> None:
    if partial and name not in data:
        return
    value = (data.get(name) or "").strip()
    if not 1 <= len(value) <= limit:
        raise ValueError(f"{name} must be 1-{limit} characters")


def _check_int(data: dict, name: str, low: int, high: int, required: bool, partial: bool) -> None:
    value = data.get(name)
    if value is None:
        if required and not partial:
            raise ValueError(f"{name} is required")
        return
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValueError(f"{name} must be an integer from {low} to {high}")


def _check_required(data: dict, name: str, partial: bool) -> None:
    if data.get(name) is None and not (partial and name not in data):
        raise ValueError(f"{name} is required")


def validate_threat_data(data: dict, partial: bool = False) -> None:
    """
    Raises:
        ValueError: name, description or 1-5 scores out of range
    """
    _check_text(data, "name", 500, partial)
    _check_text(data, "description", 10000, partial)
    for name in ("likelihood", "impact"):
        _check_int(data, name, 1, 5, required=True, partial=partial)


def validate_vulnerability_data(data: dict, partial: bool = False) -> None:
    """
    Raises:
        ValueError: name, description or 1-5 severity/exploitability out of range
    """
    _check_text(data, "name", 500, partial)
    _check_text(data, "description", 10000, partial)
    for name in ("severity", "exploitability"):
        _check_int(data, name, 1, 5, required=True, partial=partial)


def validate_bip_data(data: dict, partial: bool = False) -> None:
    """
    Raises:
        ValueError: missing number/title/recommendation or a 0-100 score out of range
    """
    _check_text(data, "bip_number", 50, partial)
    _check_text(data, "title", 500, partial)
    _check_required(data, "recommendation", partial)
    _check_int(data, "necessity_score", 0, 100, required=True, partial=partial)
    for name in BIP_SCORE_FIELDS[1:]:
        _check_int(data, name, 0, 100, required=False, partial=partial)


def validate_fud_data(data: dict, partial: bool = False) -> None:
    """
    Raises:
        ValueError: narrative outside 1-2000 characters or category missing
    """
    _check_text(data, "narrative", 2000, partial)
    _check_required(data, "category", partial)


def check_score_value(field: str, value, integer_range: Optional[Tuple[int, int]] = None):
    """
    Validate a value sent to a score endpoint.

    Raises:
        ValueError: Not a finite number, negative, or outside integer_range
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{field} must be a finite number")
    if integer_range:
        low, high = integer_range
        if not float(value).is_integer() or not low <= value <= high:
            raise ValueError(f"{field} must be an integer from {low} to {high}")
        return int(value)
    if value < 0:
        raise ValueError(f"{field} cannot be negative")
    return value


def _fair_from_dict(data: dict) -> FairEstimates:
    return FairEstimates(
        threat_event_frequency=float(data.get("threat_event_frequency", 0) or 0),
        vulnerability=float(data.get("vulnerability", 0) or 0),
        primary_loss_usd=float(data.get("primary_loss_usd", 0) or 0),
        secondary_loss_usd=float(data.get("secondary_loss_usd", 0) or 0),
    )


class RiskService:
    """Risk register operations"""

    def __init__(
        self,
        threat_storage: ThreatStorage,
        vulnerability_storage: VulnerabilityStorage,
        bip_storage: BIPStorage,
        fud_storage: FUDStorage,
        entity_audit_storage: EntityAuditStorage,
        x_posting: Optional[XPostingService] = None,
        snapshot_storage: Optional[SnapshotStorage] = None,
    ):
        self.threat_storage = threat_storage
        self.vulnerability_storage = vulnerability_storage
        self.bip_storage = bip_storage
        self.fud_storage = fud_storage
        self.entity_audit_storage = entity_audit_storage
        self.x_posting = x_posting
        self.snapshot_storage = snapshot_storage

    async def audit(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        user_id: str,
        user_name: str = "",
        diff: Optional[dict] = None,
    ) -> None:
        await self.entity_audit_storage.append(EntityAuditEntry(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            user_id=user_id,
            user_name=user_name,
            diff=diff,
        ))

    async def _announce(self, content: str, trigger: str, entity_type: str, entity_id: str) -> None:
        if self.x_posting is None:
            return
        result = await self.x_posting.publish(content, trigger, entity_type, entity_id)
        if not result.get("posted"):
            logger.info(f"X post for {entity_type} {entity_id} skipped: {result.get('reason')}")

    # ============================================
    # Threats
    # ============================================

    async def list_threats(
        self,
        stride: Optional[str] = None,
        source: Optional[str] = None,
        rating: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Threat]:
        """Published threats, highest severity first"""
        threats = await self.threat_storage.list(stride=stride, source=source, rmf_status=status)
        if rating:
            # Rating is derived, so it is filtered here rather than in SQL
            threats = [t for t in threats if t.risk_rating.value == rating]
        return threats

    async def get_threat(self, threat_id: str) -> Threat:
        threat = await self.threat_storage.get_by_id(threat_id)
        if not threat:
            raise NotFoundError("Not found")
        return threat

    def _apply_threat_fields(self, threat: Threat, data: dict) -> None:
        for name in _THREAT_TEXT:
            if name in data:
                setattr(threat, name, data[name] or "")
        for name, enum in _THREAT_ENUMS.items():
            if data.get(name) is not None:
                setattr(threat, name, enum(data[name]))
        for name in _THREAT_LISTS:
            if data.get(name) is not None:
                setattr(threat, name, list(data[name]))
        if data.get("affected_components") is not None:
            threat.affected_components = [AffectedComponent(c) for c in data["affected_components"]]
        if data.get("likelihood") is not None:
            threat.likelihood = int(data["likelihood"])
        if data.get("impact") is not None:
            threat.impact = int(data["impact"])
        if data.get("fair_estimates") is not None:
            threat.fair = _fair_from_dict(data["fair_estimates"])

    async def create_threat(self, data: dict, user_id: str, user_name: str, is_admin: bool) -> Threat:
        """
        Create a threat.

        Admin submissions are published immediately; community
        submissions start as drafts awaiting votes.
        """
        validate_threat_data(data)
        threat = Threat(
            status=WorkflowStatus.PUBLISHED if is_admin else WorkflowStatus.DRAFT,
            submitted_by=user_id,
            submitted_by_name=user_name,
        )
        self._apply_threat_fields(threat, data)
        created = await self.threat_storage.create(threat)
        await self.audit("threat", created.id, "create", user_id, user_name)
        logger.info(f"Threat created: {created.id} ({created.status.value})")

        if created.status == WorkflowStatus.PUBLISHED and created.risk_rating in (RiskRating.CRITICAL, RiskRating.HIGH):
            await self._announce(format_threat_post(created), "new_threat", "threat", created.id)
        return created

    async def update_threat(self, threat_id: str, data: dict, user_id: str, user_name: str) -> Threat:
        validate_threat_data(data, partial=True)
        threat = await self.get_threat(threat_id)
        self._apply_threat_fields(threat, data)
        updated = await self.threat_storage.update(threat)
        await self.audit("threat", threat_id, "update", user_id, user_name, diff=data)
        return updated

    async def update_threat_score(
        self,
        threat_id: str,
        field: str,
        value: float,
        reason: str,
        user_id: str,
        user_name: str,
    ) -> Threat:
        """Change one scoring field, recording the reason"""
        if field not in SCORE_COLUMNS:
            raise ValueError(f"Field '{field}' cannot be updated via score endpoint")
        value = check_score_value(field, value, (1, 5) if field in ("likelihood", "impact") else None)

        updated = await self.threat_storage.update_score(threat_id, field, value)
        if not updated:
            raise NotFoundError("Not found")
        await self.audit("threat", threat_id, "update", user_id, user_name,
                         diff={"field": field, "value": value, "reason": reason})
        return updated

    async def delete_threat(self, threat_id: str, user_id: str, user_name: str) -> None:
        if not await self.threat_storage.delete(threat_id):
            raise NotFoundError("Not found")
        await self.audit("threat", threat_id, "delete", user_id, user_name)

    # ============================================
    # Vulnerabilities
    # ============================================

    async def list_vulnerabilities(self, vuln_status: Optional[str] = None) -> List[Vulnerability]:
        return await self.vulnerability_storage.list(vuln_status=vuln_status)

    async def get_vulnerability(self, vuln_id: str) -> Vulnerability:
        vuln = await self.vulnerability_storage.get_by_id(vuln_id)
        if not vuln:
            raise NotFoundError("Not found")
        return vuln

    def _apply_vulnerability_fields(self, vuln: Vulnerability, data: dict) -> None:
        for name in ("name", "description"):
            if name in data:
                setattr(vuln, name, data[name] or "")
        for name in ("severity", "exploitability"):
            if data.get(name) is not None:
                setattr(vuln, name, int(data[name]))
        if data.get("affected_components") is not None:
            vuln.affected_components = [AffectedComponent(c) for c in data["affected_components"]]
        if data.get("vuln_status") is not None:
            vuln.vuln_status = VulnerabilityStatus(data["vuln_status"])
        for name in ("related_bips", "evidence_sources"):
            if data.get(name) is not None:
                setattr(vuln, name, list(data[name]))

    async def create_vulnerability(self, data: dict, user_id: str, user_name: str, is_admin: bool) -> Vulnerability:
        validate_vulnerability_data(data)
        vuln = Vulnerability(
            status=WorkflowStatus.PUBLISHED if is_admin else WorkflowStatus.DRAFT,
            submitted_by=user_id,
            submitted_by_name=user_name,
        )
        self._apply_vulnerability_fields(vuln, data)
        created = await self.vulnerability_storage.create(vuln)
        await self.audit("vulnerability", created.id, "create", user_id, user_name)
        return created

    async def update_vulnerability(self, vuln_id: str, data: dict, user_id: str, user_name: str) -> Vulnerability:
        validate_vulnerability_data(data, partial=True)
        vuln = await self.get_vulnerability(vuln_id)
        self._apply_vulnerability_fields(vuln, data)
        updated = await self.vulnerability_storage.update(vuln)
        await self.audit("vulnerability", vuln_id, "update", user_id, user_name, diff=data)
        return updated

    async def set_vulnerability_status(
        self,
        vuln_id: str,
        status: VulnerabilityStatus,
        user_id: str,
        user_name: str,
    ) -> Vulnerability:
        vuln = await self.get_vulnerability(vuln_id)
        previous = vuln.vuln_status
        vuln.vuln_status = status
        updated = await self.vulnerability_storage.update(vuln)
        await self.audit("vulnerability", vuln_id, "update", user_id, user_name,
                         diff={"vuln_status": status.value})

        if status in ANNOUNCED_VULN_STATUSES and previous != status:
            await self._announce(
                format_vulnerability_post(updated), "vulnerability_status_change", "vulnerability", vuln_id
            )
        return updated

    async def delete_vulnerability(self, vuln_id: str, user_id: str, user_name: str) -> None:
        if not await self.vulnerability_storage.delete(vuln_id):
            raise NotFoundError("Not found")
        await self.audit("vulnerability", vuln_id, "delete", user_id, user_name)

    # ============================================
    # BIPs
    # ============================================

    async def list_bips(self) -> List[BIPEvaluation]:
        return await self.bip_storage.list()

    async def get_bip(self, bip_id: str) -> BIPEvaluation:
        bip = await self.bip_storage.get_by_id(bip_id)
        if not bip:
            raise NotFoundError("BIP not found")
        return bip

    def _apply_bip_fields(self, bip: BIPEvaluation, data: dict) -> None:
        for name in ("bip_number", "title", "summary", "economic_impact"):
            if data.get(name) is not None:
                setattr(bip, name, data[name])
        for name in BIP_SCORE_FIELDS:
            if data.get(name) is not None:
                setattr(bip, name, int(data[name]))
        if data.get("threats_addressed") is not None:
            bip.threats_addressed = list(data["threats_addressed"])
        if data.get("recommendation") is not None:
            bip.recommendation = BIPRecommendation(data["recommendation"])
        if data.get("bip_status") is not None:
            bip.bip_status = BIPStatus(data["bip_status"])

    async def create_bip(self, data: dict, user_id: str, user_name: str) -> BIPEvaluation:
        validate_bip_data(data)
        bip = BIPEvaluation()
        self._apply_bip_fields(bip, data)
        created = await self.bip_storage.create(bip)
        await self.audit("bip", created.id, "create", user_id, user_name)
        return created

    async def update_bip(self, bip_id: str, data: dict, user_id: str, user_name: str) -> BIPEvaluation:
        validate_bip_data(data, partial=True)
        bip = await self.get_bip(bip_id)
        self._apply_bip_fields(bip, data)
        updated = await self.bip_storage.update(bip)
        await self.audit("bip", bip_id, "update", user_id, user_name, diff=data)
        return updated

    async def update_bip_score(
        self,
        bip_id: str,
        field: str,
        value: float,
        reason: str,
        user_id: str,
        user_name: str,
    ) -> BIPEvaluation:
        """Change one 0-100 BIP score, recording the reason"""
        if field not in BIP_SCORE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be updated via score endpoint")
        value = check_score_value(field, value, (0, 100))
        bip = await self.get_bip(bip_id)
        setattr(bip, field, value)
        updated = await self.bip_storage.update(bip)
        await self.audit("bip", bip_id, "update", user_id, user_name,
                         diff={"field": field, "value": value, "reason": reason})
        return updated

    # ============================================
    # FUD
    # ============================================

    async def list_fud(self, category: Optional[str] = None) -> List[FUDAnalysis]:
        return await self.fud_storage.list(category=category)

    async def get_fud(self, fud_id: str) -> FUDAnalysis:
        fud = await self.fud_storage.get_by_id(fud_id)
        if not fud:
            raise NotFoundError("Not found")
        return fud

    def _apply_fud_fields(self, fud: FUDAnalysis, data: dict) -> None:
        for name in ("narrative", "debunk_summary", "price_impact_estimate"):
            if data.get(name) is not None:
                setattr(fud, name, data[name])
        if data.get("category") is not None:
            fud.category = FUDCategory(data["category"])
        for name in ("evidence_for", "evidence_against", "related_threats"):
            if data.get(name) is not None:
                setattr(fud, name, list(data[name]))
        fud.validity_score = scoring.fud_validity_score(fud.evidence_for, fud.evidence_against)

    async def create_fud(self, data: dict, user_id: str, user_name: str, is_admin: bool) -> FUDAnalysis:
        validate_fud_data(data)
        fud = FUDAnalysis(
            status=WorkflowStatus.PUBLISHED if is_admin else WorkflowStatus.DRAFT,
            submitted_by=user_id,
            submitted_by_name=user_name,
        )
        self._apply_fud_fields(fud, data)
        created = await self.fud_storage.create(fud)
        await self.audit("fud", created.id, "create", user_id, user_name)
        return created

    async def update_fud(self, fud_id: str, data: dict, user_id: str, user_name: str) -> FUDAnalysis:
        validate_fud_data(data, partial=True)
        fud = await self.get_fud(fud_id)
        self._apply_fud_fields(fud, data)
        updated = await self.fud_storage.update(fud)
        await self.audit("fud", fud_id, "update", user_id, user_name, diff=data)
        return updated

    async def update_fud_score(
        self,
        fud_id: str,
        field: str,
        value: float,
        reason: str,
        user_id: str,
        user_name: str,
    ) -> FUDAnalysis:
        """Override the computed validity score, recording the reason"""
        if field not in FUD_SCORE_FIELDS:
            raise ValueError(f"Field '{field}' cannot be updated via score endpoint")
        value = check_score_value(field, value, (0, 100))
        fud = await self.get_fud(fud_id)
        fud.validity_score = value
        updated = await self.fud_storage.update(fud)
        await self.audit("fud", fud_id, "update", user_id, user_name,
                         diff={"field": field, "value": value, "reason": reason})
        return updated

    async def set_fud_status(
        self,
        fud_id: str,
        status: FUDStatus,
        reason: str,
        user_id: str,
        user_name: str,
    ) -> FUDAnalysis:
        fud = await self.get_fud(fud_id)
        previous = fud.fud_status
        fud.fud_status = status
        updated = await self.fud_storage.update(fud)
        await self.audit("fud", fud_id, "status_change", user_id, user_name,
                         diff={"from": previous.value, "to": status.value, "reason": reason})

        if status == FUDStatus.DEBUNKED and previous != status:
            await self._announce(format_fud_debunked_post(updated), "fud_debunked", "fud", fud_id)
        return updated

    # ============================================
    # Derived views
    # ============================================

    async def derived_risks(self) -> List[scoring.DerivedRisk]:
        threats = await self.threat_storage.list()
        vuln_ids = sorted({vid for t in threats for vid in t.vulnerability_ids})
        vulns = await self.vulnerability_storage.list_by_ids(vuln_ids)
        return scoring.derive_risks(threats, vulns)

    async def matrix(self) -> List[List[scoring.MatrixCell]]:
        """Risk matrix over derived risks, or over threats while none are linked"""
        risks = await self.derived_risks()
        if risks:
            return scoring.risk_matrix_from_risks(risks)
        return scoring.risk_matrix(await self.threat_storage.list())

    async def dashboard_stats(self) -> dict:
        """Headline counts over published items"""
        threats = await self.threat_storage.list()
        bips = await self.bip_storage.list()
        fud = await self.fud_storage.list()

        total_severity = sum(t.severity_score for t in threats)
        return {
            "totalThreats": len(threats),
            "criticalHighCount": sum(1 for t in threats if t.risk_rating in (RiskRating.CRITICAL, RiskRating.HIGH)),
            "averageSeverity": round(total_severity / len(threats), 1) if threats else 0,
            "activeRemediations": sum(t.active_remediations() for t in threats),
            "bipsPending": sum(1 for b in bips if b.bip_status in PENDING_BIP_STATUSES),
            "activeFUD": sum(1 for f in fud if f.fud_status == FUDStatus.ACTIVE),
            "mitigatedThreats": sum(1 for t in threats if t.rmf_status == ThreatStatus.MITIGATED),
            "monitoringThreats": sum(1 for t in threats if t.rmf_status == ThreatStatus.MONITORING),
        }

    async def weekly_summary_stats(self) -> dict:
        """Dashboard stats plus risk and vulnerability totals; the shape stored in snapshots"""
        stats = await self.dashboard_stats()
        risks = await self.derived_risks()
        vulns = await self.vulnerability_storage.list()
        stats.update({
            "totalRisks": len(risks),
            "criticalHighRiskCount": sum(
                1 for r in risks if r.risk_rating in (RiskRating.CRITICAL, RiskRating.HIGH)
            ),
            "totalVulnerabilities": len(vulns),
            "patchedVulnerabilities": sum(1 for v in vulns if v.vuln_status == VulnerabilityStatus.PATCHED),
        })
        return stats

    async def previous_week_stats(self, today: date) -> Optional[dict]:
        if self.snapshot_storage is None:
            return None
        snapshot = await self.snapshot_storage.get(today - timedelta(days=7))
        return snapshot.stats if snapshot else None

    async def post_weekly_summary(self, today: Optional[date] = None, stats: Optional[dict] = None) -> dict:
        """Post the weekly roll-up with deltas against the snapshot from seven days earlier"""
        today = today or datetime.utcnow().date()
        if stats is None:
            stats = await self.weekly_summary_stats()
        if self.x_posting is None:
            return {"posted": False, "reason": "disabled"}
        previous = await self.previous_week_stats(today)
        return await self.x_posting.publish(
            format_weekly_summary_post(stats, previous), "weekly_summary", "snapshot", today.isoformat()
        )

    async def snapshot_daily(self, today: Optional[date] = None) -> dict:
        """
        Store today's stats (replacing any earlier snapshot for the date).
        On Mondays the weekly summary is posted as well.

        Returns:
            {date, stats, weeklyPosted}
        """
        if self.snapshot_storage is None:
            raise RuntimeError("Snapshot storage is not configured")
        today = today or datetime.utcnow().date()
        stats = await self.weekly_summary_stats()
        await self.snapshot_storage.upsert(RiskSnapshot(snapshot_date=today, stats=stats))

        weekly_posted = False
        if today.weekday() == 0:
            result = await self.post_weekly_summary(today, stats)
            weekly_posted = bool(result.get("posted"))

        logger.info(f"Risk snapshot saved for {today}{', weekly summary posted' if weekly_posted else ''}")
        return {"date": today.isoformat(), "stats": stats, "weeklyPosted": weekly_posted}

    async def trends(self, days: int = 30, today: Optional[date] = None) -> List[RiskSnapshot]:
        """Snapshots for the last days (clamped to 1-90), oldest first"""
        if self.snapshot_storage is None:
            return []
        days = min(max(days, 1), 90)
        today = today or datetime.utcnow().date()
        return await self.snapshot_storage.list_since(today - timedelta(days=days))

    async def pending_review(self) -> dict:
        """Drafts and under-review items awaiting moderation"""
        threats = await self.threat_storage.list(statuses=REVIEWABLE_STATUSES)
        vulns = await self.vulnerability_storage.list(statuses=REVIEWABLE_STATUSES)
        fud = await self.fud_storage.list(statuses=REVIEWABLE_STATUSES)
        bips = [b for b in await self.bip_storage.list(status=None) if b.status in REVIEWABLE_STATUSES]
        return {
            "threats": [t.to_dict() for t in threats],
            "vulnerabilities": [v.to_dict() for v in vulns],
            "bips": [b.to_dict() for b in bips],
            "fud": [f.to_dict() for f in fud],
            "total": len(threats) + len(vulns) + len(bips) + len(fud),
        }

    async def audit_log(self, entity_type: Optional[str] = None, limit: int = 50) -> List[EntityAuditEntry]:
        return await self.entity_audit_storage.list(entity_type=entity_type, limit=limit)
