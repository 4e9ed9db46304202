"""
Advisor Service

AI executive advice: one-on-one chat, boardroom fan-out, collaboration
synthesis, company profiles and saved conversations.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, List, Optional, TYPE_CHECKING
from uuid import UUID

from ..agents.result import AgentResult, BoardroomResult
from ..models.company import Company
from ..models.conversation import Conversation, ConversationMessage, MessageRole
from ..models.executive import EXECUTIVES, Executive, ExecutiveRole
from .errors import NotFoundError
from .prompt_cache import PromptCache

if TYPE_CHECKING:
    from ..agents.executor import AgentExecutor
    from ..storage.company_storage import CompanyStorage
    from ..storage.conversation_storage import ConversationStorage

logger = logging.getLogger("studio.services.advisor")

MAX_MESSAGE_LENGTH = 10000
MAX_HISTORY = 20
CHAT_MAX_TOKENS = 4096
BOARDROOM_MAX_TOKENS = 300
COLLABORATE_MAX_TOKENS = 1500

BOARDROOM_PROMPT_FILE = "system/boardroom.md"
COLLABORATE_PROMPT_FILE = "system/collaborate.md"

DEFAULT_BOARDROOM_PROMPT = (
    "You are {name}, the {code}. Respond with your perspective on {focus}. "
    "Be concise (2-4 sentences). Focus only on the implications for your area."
)

DEFAULT_COLLABORATE_PROMPT = (
    "You are facilitating a C-Suite executive collaboration session. Synthesize the "
    "perspectives of all executives into a unified, actionable recommendation.\n\n"
    "{company_context}Write as \"The Executive Team\" and use \"we\" language to show consensus."
)


def validate_message(message: str) -> None:
    """
    Raises:
        ValueError: Empty or over MAX_MESSAGE_LENGTH
    """
    if not message or not message.strip():
        raise ValueError("Message is required")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValueError("Message too long (max 10,000 characters)")


def trim_history(history: List[dict]) -> List[dict]:
    """Last MAX_HISTORY user/assistant turns, each cut to MAX_MESSAGE_LENGTH"""
    trimmed = []
    for msg in (history or [])[-MAX_HISTORY:]:
        role = msg.get("role")
        if role not in ("user", "assistant"):
            continue
        trimmed.append({"role": role, "content": str(msg.get("content", ""))[:MAX_MESSAGE_LENGTH]})
    return trimmed


def short_company_context(company: Optional[Company]) -> str:
    if not company:
        return ""
    return f"Company: {company.name}, Industry: {company.industry or 'n/a'}, Size: {company.size or 'n/a'}"


class AdvisorService:
    """Executive chat operations"""

    def __init__(
        self,
        executor: AgentExecutor,
        prompt_cache: PromptCache,
        company_storage: CompanyStorage,
        conversation_storage: ConversationStorage,
    ):
        self.executor = executor
        self.prompt_cache = prompt_cache
        self.company_storage = company_storage
        self.conversation_storage = conversation_storage

    # ============================================
    # Prompts
    # ============================================

    def persona_prompt(self, executive: Executive) -> str:
        fallback = f"You are {executive.name}, the AI {executive.title} ({executive.code}) for a small business."
        return self.prompt_cache.get_prompt(executive.prompt_file, fallback=fallback)

    def build_system_prompt(self, executive: Executive, company: Optional[Company] = None) -> str:
        """Persona prompt with the company context appended"""
        prompt = self.persona_prompt(executive)
        if company:
            prompt += "\n" + company.context_block()
        return prompt

    def boardroom_prompt(self, executive: Executive, company: Optional[Company] = None) -> str:
        template = self.prompt_cache.get_prompt(BOARDROOM_PROMPT_FILE, fallback=DEFAULT_BOARDROOM_PROMPT)
        prompt = (
            template.replace("{name}", executive.name)
            .replace("{code}", executive.code)
            .replace("{title}", executive.title)
            .replace("{focus}", executive.focus)
        )
        context = short_company_context(company)
        if context:
            prompt += f"\n\n{context}"
        return prompt

    # ============================================
    # Company
    # ============================================

    async def get_company(self, user_id: UUID) -> Optional[Company]:
        return await self.company_storage.get_by_user(user_id)

    async def save_company(self, user_id: UUID, data: dict) -> Company:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValueError("Company name is required")

        company = await self.company_storage.get_by_user(user_id) or Company(user_id=user_id)
        company.name = name
        company.industry = data.get("industry")
        company.size = data.get("size")
        company.annual_revenue = data.get("annual_revenue")
        company.currency = data.get("currency") or "USD"
        company.goals = [g for g in (data.get("goals") or []) if g]
        company.challenges = [c for c in (data.get("challenges") or []) if c]
        return await self.company_storage.upsert(company)

    # ============================================
    # Chat
    # ============================================

    async def _prepare_chat(
        self,
        user_id: UUID,
        role: ExecutiveRole,
        message: str,
        history: List[dict],
    ):
        validate_message(message)

        executive = EXECUTIVES[role]
        company = await self.company_storage.get_by_user(user_id)
        system_prompt = self.build_system_prompt(executive, company)
        messages = trim_history(history) + [{"role": "user", "content": message}]
        return executive, system_prompt, messages

    async def chat(
        self,
        user_id: UUID,
        role: ExecutiveRole,
        message: str,
        history: Optional[List[dict]] = None,
        conversation_id: Optional[UUID] = None,
    ) -> AgentResult:
        """One-on-one answer from an executive"""
        conversation = await self._owned_conversation(conversation_id, user_id) if conversation_id else None
        executive, system_prompt, messages = await self._prepare_chat(user_id, role, message, history or [])

        result = await self.executor.execute(system_prompt, messages, max_tokens=CHAT_MAX_TOKENS)
        result.agent_type = executive.code

        if conversation and not result.error:
            await self._append(conversation.id, MessageRole.USER, message)
            await self._append(conversation.id, MessageRole.ASSISTANT, result.content, executive.code)
        return result

    async def stream_chat(
        self,
        user_id: UUID,
        role: ExecutiveRole,
        message: str,
        history: Optional[List[dict]] = None,
        conversation_id: Optional[UUID] = None,
    ) -> AsyncIterator[str]:
        """Yield response text chunks; the full reply is saved when the stream ends"""
        conversation = await self._owned_conversation(conversation_id, user_id) if conversation_id else None
        executive, system_prompt, messages = await self._prepare_chat(user_id, role, message, history or [])

        parts = []
        async for text in self.executor.stream(system_prompt, messages, max_tokens=CHAT_MAX_TOKENS):
            parts.append(text)
            yield text

        if conversation:
            await self._append(conversation.id, MessageRole.USER, message)
            await self._append(conversation.id, MessageRole.ASSISTANT, "".join(parts), executive.code)

    async def boardroom(
        self,
        user_id: UUID,
        message: str,
        conversation_id: Optional[UUID] = None,
    ) -> BoardroomResult:
        """Every executive answers briefly, in parallel"""
        validate_message(message)

        conversation = await self._owned_conversation(conversation_id, user_id) if conversation_id else None
        company = await self.company_storage.get_by_user(user_id)
        prompts = {role: self.boardroom_prompt(executive, company) for role, executive in EXECUTIVES.items()}

        result = await self.executor.boardroom(
            prompts, [{"role": "user", "content": message}], max_tokens=BOARDROOM_MAX_TOKENS
        )

        if conversation:
            await self._append(conversation.id, MessageRole.USER, message)
            for response in result.responses:
                await self._append(conversation.id, MessageRole.EXECUTIVE, response.response, response.executive)
        return result

    async def collaborate(
        self,
        user_id: UUID,
        original_question: str,
        responses: List[dict],
        collaboration_prompt: Optional[str] = None,
    ) -> AgentResult:
        """Synthesize boardroom answers into one team recommendation"""
        if not original_question or not responses:
            raise ValueError("Original question and responses are required")

        company = await self.company_storage.get_by_user(user_id)
        context = short_company_context(company)
        template = self.prompt_cache.get_prompt(COLLABORATE_PROMPT_FILE, fallback=DEFAULT_COLLABORATE_PROMPT)
        system_prompt = template.replace("{company_context}", f"{context}\n\n" if context else "")

        executive_responses = "\n\n".join(
            f"**{r.get('executive', '')} ({r.get('name', '')}):**\n{r.get('response', '')}"
            for r in responses
        )
        user_prompt = (
            f"**Original Question:**\n{original_question}\n\n"
            f"**Individual Executive Responses:**\n\n{executive_responses}\n\n"
        )
        if collaboration_prompt:
            user_prompt += f"**Additional Direction from User:**\n{collaboration_prompt}\n\n"
        user_prompt += (
            "**Task:** Please synthesize these perspectives into a unified executive team "
            "recommendation. Highlight areas of consensus and provide a clear, actionable path forward."
        )

        result = await self.executor.execute(
            system_prompt, [{"role": "user", "content": user_prompt}], max_tokens=COLLABORATE_MAX_TOKENS
        )
        result.agent_type = "collaborate"
        return result

    # ============================================
    # Conversations
    # ============================================

    async def _owned_conversation(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        conversation = await self.conversation_storage.get_for_user(conversation_id, user_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        return conversation

    async def _append(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
        executive: Optional[str] = None,
    ) -> ConversationMessage:
        return await self.conversation_storage.add_message(ConversationMessage(
            conversation_id=conversation_id,
            role=role,
            executive=executive,
            content=content,
        ))

    async def create_conversation(self, user_id: UUID, executive: str, title: Optional[str] = None) -> Conversation:
        code = (executive or "boardroom").upper()
        if code != "BOARDROOM" and code not in ExecutiveRole.__members__:
            raise ValueError(f"Invalid executive role: {executive}")
        return await self.conversation_storage.create(Conversation(
            user_id=user_id,
            executive="boardroom" if code == "BOARDROOM" else code,
            title=(title or "New conversation")[:200],
        ))

    async def list_conversations(self, user_id: UUID, limit: int = 50) -> List[Conversation]:
        return await self.conversation_storage.list_by_user(user_id, limit)

    async def get_conversation(self, conversation_id: UUID, user_id: UUID) -> dict:
        conversation = await self._owned_conversation(conversation_id, user_id)
        messages = await self.conversation_storage.list_messages(conversation_id)
        data = conversation.to_dict()
        data["messages"] = [m.to_dict() for m in messages]
        return data

    async def delete_conversation(self, conversation_id: UUID, user_id: UUID) -> None:
        if not await self.conversation_storage.delete(conversation_id, user_id):
            raise NotFoundError("Conversation not found")

    async def add_message(
        self,
        conversation_id: UUID,
        user_id: UUID,
        role: str,
        content: str,
        executive: Optional[str] = None,
    ) -> ConversationMessage:
        await self._owned_conversation(conversation_id, user_id)
        try:
            message_role = MessageRole(role)
        except ValueError:
            raise ValueError(f"Invalid message role: {role}")
        if not content:
            raise ValueError("Message content is required")
        return await self._append(conversation_id, message_role, content[:MAX_MESSAGE_LENGTH * 5], executive)
