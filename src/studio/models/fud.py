"""
FUD Analysis Model

Tracked "Fear, Uncertainty, Doubt" narratives and how valid they are.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from .threat import WorkflowStatus, new_entity_id


class FUDCategory(str, Enum):
    QUANTUM = "QUANTUM"
    REGULATION = "REGULATION"
    CENTRALIZATION = "CENTRALIZATION"
    ENERGY = "ENERGY"
    SCALABILITY = "SCALABILITY"
    COMPETITION = "COMPETITION"
    SECURITY = "SECURITY"


class FUDStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DEBUNKED = "DEBUNKED"
    PARTIALLY_VALID = "PARTIALLY_VALID"


@dataclass
class FUDAnalysis:
    id: str = field(default_factory=lambda: new_entity_id("fud"))
    narrative: str = ""
    category: FUDCategory = FUDCategory.SECURITY
    validity_score: int = 50                 # 0 = pure FUD, 100 = fully valid
    fud_status: FUDStatus = FUDStatus.ACTIVE
    evidence_for: List[str] = field(default_factory=list)
    evidence_against: List[str] = field(default_factory=list)
    debunk_summary: str = ""
    related_threats: List[str] = field(default_factory=list)
    price_impact_estimate: str = ""
    status: WorkflowStatus = WorkflowStatus.DRAFT
    submitted_by: Optional[str] = None
    submitted_by_name: Optional[str] = None
    last_seen: datetime = field(default_factory=datetime.utcnow)
    last_updated: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "narrative": self.narrative,
            "category": self.category.value,
            "validity_score": self.validity_score,
            "fud_status": self.fud_status.value,
            "evidence_for": self.evidence_for,
            "evidence_against": self.evidence_against,
            "debunk_summary": self.debunk_summary,
            "related_threats": self.related_threats,
            "price_impact_estimate": self.price_impact_estimate,
            "status": self.status.value,
            "submitted_by": self.submitted_by,
            "submitted_by_name": self.submitted_by_name,
            "last_seen": self.last_seen.isoformat(),
            "last_updated": self.last_updated.isoformat(),
        }
