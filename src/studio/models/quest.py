"""
Quest Models

Workout quests from the catalogue and the daily assignments handed out to users.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from .recovery import RecoveryLevel


class QuestCategory(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    FLEXIBILITY = "flexibility"
    ENDURANCE = "endurance"
    MIXED = "mixed"


class QuestDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ELITE = "elite"


@dataclass
class Quest:
    title: str
    description: str = ""
    category: QuestCategory = QuestCategory.MIXED
    difficulty: QuestDifficulty = QuestDifficulty.BEGINNER
    recovery_level: RecoveryLevel = RecoveryLevel.HIGH
    xp_reward: int = 50
    exercises: List[dict] = field(default_factory=list)
    estimated_minutes: int = 30
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "difficulty": self.difficulty.value,
            "recovery_level": self.recovery_level.value,
            "xp_reward": self.xp_reward,
            "exercises": self.exercises,
            "estimated_minutes": self.estimated_minutes,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class DailyQuestAssignment:
    """
    One quest offered to a user for a day.

    Each day holds one assignment per recovery tier; at most one is selected.
    """
    user_id: UUID
    quest_id: UUID
    recovery_level: RecoveryLevel
    assigned_date: date = field(default_factory=date.today)
    selected: bool = False
    completed: bool = False
    completed_at: Optional[datetime] = None
    quest: Optional[Quest] = None
    id: UUID = field(default_factory=uuid4)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "quest_id": str(self.quest_id),
            "recovery_level": self.recovery_level.value,
            "assigned_date": self.assigned_date.isoformat(),
            "selected": self.selected,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "quest": self.quest.to_dict() if self.quest else None,
        }
