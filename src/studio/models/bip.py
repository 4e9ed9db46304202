"""
BIP Evaluation Model

AI-assisted assessment of a Bitcoin Improvement Proposal against the threat landscape.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .threat import WorkflowStatus, new_entity_id


class BIPRecommendation(str, Enum):
    ESSENTIAL = "ESSENTIAL"
    RECOMMENDED = "RECOMMENDED"
    OPTIONAL = "OPTIONAL"
    UNNECESSARY = "UNNECESSARY"
    HARMFUL = "HARMFUL"


class BIPStatus(str, Enum):
    DRAFT = "DRAFT"
    PROPOSED = "PROPOSED"
    ACTIVE = "ACTIVE"
    FINAL = "FINAL"
    WITHDRAWN = "WITHDRAWN"
    REPLACED = "REPLACED"


PENDING_BIP_STATUSES = (BIPStatus.PROPOSED, BIPStatus.DRAFT)


@dataclass
class BIPEvaluation:
    id: str = field(default_factory=lambda: new_entity_id("bip"))
    bip_number: str = ""                            # "BIP-0141"
    title: str = ""
    summary: str = ""
    recommendation: BIPRecommendation = BIPRecommendation.OPTIONAL
    necessity_score: int = 0                        # 0-100
    threats_addressed: List[str] = field(default_factory=list)
    mitigation_effectiveness: int = 0
    community_consensus: int = 0
    implementation_readiness: int = 0
    economic_impact: str = ""
    adoption_percentage: int = 0
    bip_status: BIPStatus = BIPStatus.PROPOSED
    status: WorkflowStatus = WorkflowStatus.PUBLISHED
    last_evaluated_at: Optional[datetime] = None
    evaluation_trigger: Optional[str] = None
    last_updated: datetime = field(default_factory=datetime.utcnow)

    @property
    def number(self) -> int:
        """Numeric part of bip_number"""
        digits = "".join(ch for ch in self.bip_number if ch.isdigit())
        return int(digits) if digits else 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bip_number": self.bip_number,
            "title": self.title,
            "summary": self.summary,
            "recommendation": self.recommendation.value,
            "necessity_score": self.necessity_score,
            "threats_addressed": self.threats_addressed,
            "mitigation_effectiveness": self.mitigation_effectiveness,
            "community_consensus": self.community_consensus,
            "implementation_readiness": self.implementation_readiness,
            "economic_impact": self.economic_impact,
            "adoption_percentage": self.adoption_percentage,
            "bip_status": self.bip_status.value,
            "status": self.status.value,
            "last_evaluated_at": self.last_evaluated_at.isoformat() if self.last_evaluated_at else None,
            "evaluation_trigger": self.evaluation_trigger,
            "last_updated": self.last_updated.isoformat(),
        }
