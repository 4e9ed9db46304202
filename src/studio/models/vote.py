"""
Vote Models

Community review votes on draft threats and FUD analyses.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

VOTE_THRESHOLD = 3


class VoteTargetType(str, Enum):
    THREAT = "threat"
    FUD = "fud"


@dataclass
class Vote:
    target_type: VoteTargetType
    target_id: str
    user_id: UUID
    vote_value: int                  # 1 approve, -1 reject
    user_name: str = ""
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class VoteSummary:
    approvals: int = 0
    rejections: int = 0
    user_vote: Optional[int] = None
    threshold: int = VOTE_THRESHOLD

    @property
    def net_score(self) -> int:
        return self.approvals - self.rejections

    def to_dict(self) -> dict:
        return {
            "approvals": self.approvals,
            "rejections": self.rejections,
            "net_score": self.net_score,
            "user_vote": self.user_vote,
            "threshold": self.threshold,
        }
