"""
Risk Snapshot Model

One day's dashboard stats, kept for trend charts and week-over-week deltas.
"""
from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class RiskSnapshot:
    snapshot_date: date
    stats: dict
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "date": self.snapshot_date.isoformat(),
            "stats": self.stats,
        }
