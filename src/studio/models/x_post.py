"""
X Post Model

Record of an automated post to X (Twitter).
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class XPostStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    FAILED = "failed"


@dataclass
class XPost:
    content: str
    entity_type: str                    # threat, fud, bip, vulnerability, summary
    entity_id: Optional[str] = None
    trigger: str = ""                   # e.g. new_threat, bip_evaluated
    status: XPostStatus = XPostStatus.PENDING
    post_id: Optional[str] = None
    error_message: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    posted_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "content": self.content,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "trigger": self.trigger,
            "status": self.status.value,
            "post_id": self.post_id,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
        }
