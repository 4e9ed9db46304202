"""
Conversation Storage

PostgreSQL storage for advisor conversations and their messages.
"""
import logging
from datetime import datetime
from typing import Optional, List
from uuid import UUID

from .base import BaseStorage
from ..models.conversation import Conversation, ConversationMessage, MessageRole

logger = logging.getLogger("studio.storage.conversation")


class ConversationStorage(BaseStorage):
    """Storage for Conversation and ConversationMessage entities"""

    async def create(self, conversation: Conversation) -> Conversation:
        query = """
            INSERT INTO conversations (id, user_id, executive, title, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            conversation.id, conversation.user_id, conversation.executive,
            conversation.title, conversation.created_at, conversation.updated_at
        )
        return self._row_to_conversation(row)

    async def get_for_user(self, conversation_id: UUID, user_id: UUID) -> Optional[Conversation]:
        """Get a conversation only if the user owns it"""
        query = "SELECT * FROM conversations WHERE id = $1 AND user_id = $2"
        row = await self.fetchrow(query, conversation_id, user_id)
        return self._row_to_conversation(row) if row else None

    async def list_by_user(self, user_id: UUID, limit: int = 50) -> List[Conversation]:
        query = """
            SELECT * FROM conversations
            WHERE user_id = $1
            ORDER BY updated_at DESC
            LIMIT $2
        """
        rows = await self.fetch(query, user_id, limit)
        return [self._row_to_conversation(row) for row in rows]

    async def delete(self, conversation_id: UUID, user_id: UUID) -> bool:
        query = "DELETE FROM conversations WHERE id = $1 AND user_id = $2"
        result = await self.execute(query, conversation_id, user_id)
        return "DELETE 1" in result

    async def add_message(self, message: ConversationMessage) -> ConversationMessage:
        """Append a message and bump the conversation's updated_at"""
        query = """
            INSERT INTO conversation_messages (id, conversation_id, role, executive, content, created_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING *
        """
        row = await self.fetchrow(
            query,
            message.id, message.conversation_id, message.role.value,
            message.executive, message.content, message.created_at
        )
        await self.execute(
            "UPDATE conversations SET updated_at = $2 WHERE id = $1",
            message.conversation_id, datetime.utcnow()
        )
        return self._row_to_message(row)

    async def list_messages(self, conversation_id: UUID) -> List[ConversationMessage]:
        query = """
            SELECT * FROM conversation_messages
            WHERE conversation_id = $1
            ORDER BY created_at ASC
        """
        rows = await self.fetch(query, conversation_id)
        return [self._row_to_message(row) for row in rows]

    def _row_to_conversation(self, row) -> Conversation:
        return Conversation(
            id=row["id"],
            user_id=row["user_id"],
            executive=row["executive"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_message(self, row) -> ConversationMessage:
        return ConversationMessage(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=MessageRole(row["role"]),
            executive=row["executive"],
            content=row["content"],
            created_at=row["created_at"],
        )
