"""
User Model

Represents an account shared by the advisor, risk and fitness apps.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional
from uuid import UUID, uuid4


@dataclass
class User:
    """
    User entity.

    Authentication fields are common to every app. The game fields
    (level, xp, streaks) and body profile are only used by fitness.
    """
    id: UUID = field(default_factory=uuid4)
    email: str = ""
    username: str = ""
    display_name: str = ""
    password_hash: Optional[str] = None
    is_admin: bool = False
    is_active: bool = True
    avatar_url: Optional[str] = None

    # Fitness progression
    level: int = 1
    current_xp: int = 0                      # XP towards the next level
    total_xp: int = 0                        # Lifetime XP
    streak_count: int = 0
    longest_streak: int = 0
    last_workout_date: Optional[date] = None
    workouts_completed: int = 0

    # Body profile
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    body_type: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    fitness_goal: Optional[str] = None
    body_measurements: dict = field(default_factory=dict)

    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    last_seen_at: Optional[datetime] = None

    def to_dict(self, include_sensitive: bool = False) -> dict:
        """Convert to dictionary for API response"""
        result = {
            "id": str(self.id),
            "email": self.email,
            "username": self.username,
            "display_name": self.display_name,
            "is_admin": self.is_admin,
            "is_active": self.is_active,
            "avatar_url": self.avatar_url,
            "level": self.level,
            "current_xp": self.current_xp,
            "total_xp": self.total_xp,
            "streak_count": self.streak_count,
            "longest_streak": self.longest_streak,
            "last_workout_date": self.last_workout_date.isoformat() if self.last_workout_date else None,
            "workouts_completed": self.workouts_completed,
            "height_cm": self.height_cm,
            "weight_kg": self.weight_kg,
            "body_type": self.body_type,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "gender": self.gender,
            "fitness_goal": self.fitness_goal,
            "body_measurements": self.body_measurements,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "last_seen_at": self.last_seen_at.isoformat() if self.last_seen_at else None,
        }
        if include_sensitive:
            result["password_hash"] = self.password_hash
        return result
