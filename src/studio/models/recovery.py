"""
Recovery Models

Daily recovery scores (e.g. from a wearable) and the workout intensity they suggest.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class RecoveryLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


RECOVERY_TIER_ORDER = [RecoveryLevel.LOW, RecoveryLevel.MEDIUM, RecoveryLevel.HIGH]

RECOVERY_TIERS = {
    RecoveryLevel.LOW: {
        "label": "Rest Day",
        "description": "Light movement to help your body recover",
    },
    RecoveryLevel.MEDIUM: {
        "label": "Active Recovery",
        "description": "Moderate activity to stay moving without overloading",
    },
    RecoveryLevel.HIGH: {
        "label": "Full WOD",
        "description": "Push your limits with a full workout",
    },
}


@dataclass
class RecoveryScore:
    user_id: UUID
    score: int                                  # 0-100
    source: str = "manual"
    scored_date: date = field(default_factory=date.today)
    raw_data: Optional[dict] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "score": self.score,
            "source": self.source,
            "scored_date": self.scored_date.isoformat(),
            "raw_data": self.raw_data,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RecoveryRecommendation:
    level: RecoveryLevel
    score: Optional[int] = None
    source: Optional[str] = None
    confidence: str = "none"                    # "data" when backed by a score

    def to_dict(self) -> dict:
        tier = RECOVERY_TIERS[self.level]
        return {
            "level": self.level.value,
            "score": self.score,
            "source": self.source,
            "confidence": self.confidence,
            "label": tier["label"],
            "description": tier["description"],
        }
