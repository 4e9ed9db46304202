"""
Workout Model

A logged workout and the XP it earned.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4


@dataclass
class Workout:
    user_id: UUID
    workout_type: str
    duration_minutes: int
    title: str = ""
    notes: Optional[str] = None
    quest_id: Optional[UUID] = None
    xp_earned: int = 0
    id: UUID = field(default_factory=uuid4)
    completed_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "workout_type": self.workout_type,
            "title": self.title or self.workout_type,
            "duration_minutes": self.duration_minutes,
            "notes": self.notes,
            "quest_id": str(self.quest_id) if self.quest_id else None,
            "xp_earned": self.xp_earned,
            "completed_at": self.completed_at.isoformat(),
        }
