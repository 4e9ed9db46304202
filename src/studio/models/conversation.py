"""
Conversation Models

Saved advisor conversations: one-on-one with an executive or a boardroom session.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"      # One-on-one executive reply
    EXECUTIVE = "executive"      # Boardroom reply from a named executive


@dataclass
class Conversation:
    """
    Conversation header.

    executive is an executive code (CFO, CMO, ...) or "boardroom".
    """
    id: UUID = field(default_factory=uuid4)
    user_id: UUID = field(default_factory=uuid4)
    executive: str = "boardroom"
    title: str = "New conversation"
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "executive": self.executive,
            "title": self.title,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class ConversationMessage:
    id: UUID = field(default_factory=uuid4)
    conversation_id: UUID = field(default_factory=uuid4)
    role: MessageRole = MessageRole.USER
    executive: Optional[str] = None
    content: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "conversation_id": str(self.conversation_id),
            "role": self.role.value,
            "executive": self.executive,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }
