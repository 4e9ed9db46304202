"""
Threat and Vulnerability Models

Risk register entities for the Bitcoin risk-management app.
Risk = Threat x Vulnerability; threats reference the vulnerabilities they exploit.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import uuid4


class StrideCategory(str, Enum):
    SPOOFING = "SPOOFING"
    TAMPERING = "TAMPERING"
    REPUDIATION = "REPUDIATION"
    INFORMATION_DISCLOSURE = "INFORMATION_DISCLOSURE"
    DENIAL_OF_SERVICE = "DENIAL_OF_SERVICE"
    ELEVATION_OF_PRIVILEGE = "ELEVATION_OF_PRIVILEGE"


class ThreatSource(str, Enum):
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    TECHNOLOGY = "TECHNOLOGY"
    REGULATORY = "REGULATORY"
    NETWORK = "NETWORK"
    PROTOCOL = "PROTOCOL"
    CRYPTOGRAPHIC = "CRYPTOGRAPHIC"
    OPERATIONAL = "OPERATIONAL"
    SUPPLY_CHAIN = "SUPPLY_CHAIN"


class AffectedComponent(str, Enum):
    CONSENSUS = "CONSENSUS"
    P2P_NETWORK = "P2P_NETWORK"
    WALLET = "WALLET"
    MINING = "MINING"
    SCRIPT_ENGINE = "SCRIPT_ENGINE"
    CRYPTO_STACK = "CRYPTO_STACK"
    FULL_NODE = "FULL_NODE"
    SPV_CLIENT = "SPV_CLIENT"


class RiskRating(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"


class ThreatStatus(str, Enum):
    """RMF lifecycle of a threat (stored as rmf_status)"""
    IDENTIFIED = "IDENTIFIED"
    ANALYZING = "ANALYZING"
    MITIGATED = "MITIGATED"
    ACCEPTED = "ACCEPTED"
    MONITORING = "MONITORING"
    ESCALATED = "ESCALATED"


class NistStage(str, Enum):
    PREPARE = "PREPARE"
    CATEGORIZE = "CATEGORIZE"
    SELECT = "SELECT"
    IMPLEMENT = "IMPLEMENT"
    ASSESS = "ASSESS"
    AUTHORIZE = "AUTHORIZE"
    MONITOR = "MONITOR"


class WorkflowStatus(str, Enum):
    """Publication state shared by threats, vulnerabilities, BIPs and FUD"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"
    UNDER_REVIEW = "under_review"


class RemediationStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    DEFERRED = "DEFERRED"


class VulnerabilityStatus(str, Enum):
    DISCOVERED = "DISCOVERED"
    CONFIRMED = "CONFIRMED"
    EXPLOITABLE = "EXPLOITABLE"
    PATCHED = "PATCHED"
    MITIGATED = "MITIGATED"
    DISPUTED = "DISPUTED"


REVIEWABLE_STATUSES = (WorkflowStatus.DRAFT, WorkflowStatus.UNDER_REVIEW)
VISIBLE_STATUSES = (WorkflowStatus.PUBLISHED, WorkflowStatus.UNDER_REVIEW)


def rating_for_score(score: float) -> RiskRating:
    """Map a 1-25 score onto a rating band"""
    if score >= 20:
        return RiskRating.CRITICAL
    if score >= 12:
        return RiskRating.HIGH
    if score >= 6:
        return RiskRating.MEDIUM
    if score >= 3:
        return RiskRating.LOW
    return RiskRating.VERY_LOW


def new_entity_id(prefix: str) -> str:
    """Short readable id such as threat-1a2b3c4d"""
    return f"{prefix}-{uuid4().hex[:8]}"


@dataclass
class FairEstimates:
    """FAIR quantitative loss estimates"""
    threat_event_frequency: float = 0.0    # events per year
    vulnerability: float = 0.0             # 0-1 probability of a successful exploit
    primary_loss_usd: float = 0.0
    secondary_loss_usd: float = 0.0

    @property
    def loss_event_frequency(self) -> float:
        return self.threat_event_frequency * self.vulnerability

    @property
    def annualized_loss_expectancy(self) -> float:
        return self.loss_event_frequency * (self.primary_loss_usd + self.secondary_loss_usd)

    def to_dict(self) -> dict:
        return {
            "threat_event_frequency": self.threat_event_frequency,
            "vulnerability": self.vulnerability,
            "loss_event_frequency": self.loss_event_frequency,
            "primary_loss_usd": self.primary_loss_usd,
            "secondary_loss_usd": self.secondary_loss_usd,
            "annualized_loss_expectancy": self.annualized_loss_expectancy,
        }


@dataclass
class Threat:
    """
    Threat entity.

    severity_score and risk_rating are derived from likelihood x impact
    and are never written directly.
    """
    id: str = field(default_factory=lambda: new_entity_id("threat"))
    name: str = ""
    description: str = ""
    stride_category: StrideCategory = StrideCategory.TAMPERING
    stride_rationale: str = ""
    threat_source: ThreatSource = ThreatSource.TECHNOLOGY
    affected_components: List[AffectedComponent] = field(default_factory=list)
    vulnerability: str = ""
    exploit_scenario: str = ""
    likelihood: int = 1
    likelihood_justification: str = ""
    impact: int = 1
    impact_justification: str = ""
    fair: FairEstimates = field(default_factory=FairEstimates)
    nist_stage: NistStage = NistStage.PREPARE
    rmf_status: ThreatStatus = ThreatStatus.IDENTIFIED
    remediation_strategies: List[dict] = field(default_factory=list)
    related_bips: List[str] = field(default_factory=list)
    evidence_sources: List[dict] = field(default_factory=list)
    vulnerability_ids: List[str] = field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.DRAFT
    submitted_by: Optional[str] = None
    submitted_by_name: Optional[str] = None
    date_identified: datetime = field(default_factory=datetime.utcnow)
    last_updated: datetime = field(default_factory=datetime.utcnow)

    @property
    def severity_score(self) -> int:
        return self.likelihood * self.impact

    @property
    def risk_rating(self) -> RiskRating:
        return rating_for_score(self.severity_score)

    def active_remediations(self) -> int:
        """Number of remediation strategies planned or in progress"""
        active = {RemediationStatus.PLANNED.value, RemediationStatus.IN_PROGRESS.value}
        return sum(1 for r in self.remediation_strategies if r.get("status") in active)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "stride_category": self.stride_category.value,
            "stride_rationale": self.stride_rationale,
            "threat_source": self.threat_source.value,
            "affected_components": [c.value for c in self.affected_components],
            "vulnerability": self.vulnerability,
            "exploit_scenario": self.exploit_scenario,
            "likelihood": self.likelihood,
            "likelihood_justification": self.likelihood_justification,
            "impact": self.impact,
            "impact_justification": self.impact_justification,
            "severity_score": self.severity_score,
            "risk_rating": self.risk_rating.value,
            "fair_estimates": self.fair.to_dict(),
            "nist_stage": self.nist_stage.value,
            "rmf_status": self.rmf_status.value,
            "remediation_strategies": self.remediation_strategies,
            "related_bips": self.related_bips,
            "evidence_sources": self.evidence_sources,
            "vulnerability_ids": self.vulnerability_ids,
            "status": self.status.value,
            "submitted_by": self.submitted_by,
            "submitted_by_name": self.submitted_by_name,
            "date_identified": self.date_identified.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class Vulnerability:
    """Weakness in a Bitcoin component that threats can exploit"""
    id: str = field(default_factory=lambda: new_entity_id("vuln"))
    name: str = ""
    description: str = ""
    affected_components: List[AffectedComponent] = field(default_factory=list)
    severity: int = 1              # 1-5
    exploitability: int = 1        # 1-5
    vuln_status: VulnerabilityStatus = VulnerabilityStatus.DISCOVERED
    related_bips: List[str] = field(default_factory=list)
    evidence_sources: List[dict] = field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.DRAFT
    submitted_by: Optional[str] = None
    submitted_by_name: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    last_updated: datetime = field(default_factory=datetime.utcnow)

    @property
    def vulnerability_score(self) -> int:
        return self.severity * self.exploitability

    @property
    def vulnerability_rating(self) -> RiskRating:
        return rating_for_score(self.vulnerability_score)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "affected_components": [c.value for c in self.affected_components],
            "severity": self.severity,
            "exploitability": self.exploitability,
            "vulnerability_score": self.vulnerability_score,
            "vulnerability_rating": self.vulnerability_rating.value,
            "vuln_status": self.vuln_status.value,
            "related_bips": self.related_bips,
            "evidence_sources": self.evidence_sources,
            "status": self.status.value,
            "submitted_by": self.submitted_by,
            "submitted_by_name": self.submitted_by_name,
            "created_at": self.created_at.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }
