"""
Monitoring Pipeline Models

External threat signals, monitoring runs and the BIP re-evaluation queue.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4


class SignalSource(str, Enum):
    NVD = "nvd"
    GITHUB_BITCOIN = "github_bitcoin"
    BITCOIN_OPTECH = "bitcoin_optech"


class SignalSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    SignalSeverity.CRITICAL: 4,
    SignalSeverity.HIGH: 3,
    SignalSeverity.MEDIUM: 2,
    SignalSeverity.LOW: 1,
    SignalSeverity.UNKNOWN: 0,
}


@dataclass
class ExternalSignal:
    """
    Threat signal fetched from an external feed.

    (source, external_id) is unique in external_signals, which is how
    repeated scans deduplicate.
    """
    source: SignalSource
    external_id: str
    source_url: str
    title: str
    description: str = ""
    severity: SignalSeverity = SignalSeverity.UNKNOWN
    published_date: Optional[datetime] = None
    related_bips: List[str] = field(default_factory=list)
    cve_id: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "source": self.source.value,
            "external_id": self.external_id,
            "source_url": self.source_url,
            "title": self.title,
            "description": self.description,
            "severity": self.severity.value,
            "published_date": self.published_date.isoformat() if self.published_date else None,
            "related_bips": self.related_bips,
            "cve_id": self.cve_id,
            "created_at": self.created_at.isoformat(),
        }


class RunStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class MonitoringRun:
    """One execution of a pipeline job (threat_scan, reeval)"""
    run_type: str
    status: RunStatus = RunStatus.STARTED
    result: Optional[dict] = None
    error: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "run_type": self.run_type,
            "status": self.status.value,
            "result": self.result,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class QueueStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ReEvalTrigger:
    """Request to re-evaluate a BIP"""
    bip_id: str
    reason: str                      # new_threat, manual, ...
    priority: int = 0
    source_id: Optional[str] = None  # Signal or entity that caused it


@dataclass
class ReEvalItem:
    bip_id: str
    reason: str
    priority: int = 0
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = 0
    max_attempts: int = 3
    source_id: Optional[str] = None
    last_error: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "bip_id": self.bip_id,
            "reason": self.reason,
            "priority": self.priority,
            "status": self.status.value,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "source_id": self.source_id,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
