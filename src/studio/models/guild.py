"""
Guild Models

Guilds are teams of fitness users; each user belongs to at most one.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class GuildRole(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class LeaderboardType(str, Enum):
    TOTAL_XP = "total_xp"
    WEEKLY_XP = "weekly_xp"
    STREAK = "streak"


@dataclass
class Guild:
    name: str
    slug: str
    created_by: UUID
    description: Optional[str] = None
    avatar_url: Optional[str] = None
    is_public: bool = True
    member_count: int = 1
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "avatar_url": self.avatar_url,
            "is_public": self.is_public,
            "created_by": str(self.created_by),
            "member_count": self.member_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class GuildMember:
    guild_id: UUID
    user_id: UUID
    role: GuildRole = GuildRole.MEMBER
    id: UUID = field(default_factory=uuid4)
    joined_at: datetime = field(default_factory=datetime.utcnow)

    # Joined from users when listing members
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    level: int = 1

    def to_dict(self) -> dict:
        return {
            "guild_id": str(self.guild_id),
            "user_id": str(self.user_id),
            "role": self.role.value,
            "joined_at": self.joined_at.isoformat(),
            "username": self.username or "Unknown",
            "display_name": self.display_name or "Unknown",
            "avatar_url": self.avatar_url,
            "level": self.level,
        }


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: UUID
    username: str
    display_name: str
    value: int
    avatar_url: Optional[str] = None
    level: int = 1

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "user_id": str(self.user_id),
            "username": self.username,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "level": self.level,
            "value": self.value,
        }
