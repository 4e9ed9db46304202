"""
Document Service

Generates downloadable documents and meeting minutes from executive
conversations.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from ..agents.executor import LLMNotConfigured
from ..models.executive import EXECUTIVES, get_executive
from ..security.sanitize import slugify, strip_code_fences
from .prompt_cache import PromptCache

if TYPE_CHECKING:
    from ..agents.executor import AgentExecutor

logger = logging.getLogger("studio.services.documents")

DOCUMENT_MAX_TOKENS = 4000
MINUTES_MAX_TOKENS = 2000
MINUTES_PROMPT_FILE = "system/minutes.md"

FILE_TYPES = {
    # file_type: (extension, mime type, instructions)
    "markdown": ("md", "text/markdown",
                 "Generate well-formatted Markdown with headers, lists, and tables where appropriate."),
    "csv": ("csv", "text/csv",
            "Generate valid CSV data with a header row. Use commas as delimiters. "
            "Ensure all values are properly escaped."),
    "json": ("json", "application/json", "Generate valid JSON. Use proper formatting with indentation."),
    "txt": ("txt", "text/plain", "Generate plain text content."),
}

DEFAULT_MINUTES_PROMPT = (
    "You are a professional executive assistant tasked with creating meeting minutes. "
    "Generate well-formatted meeting minutes in Markdown with a header, executive summary, "
    "discussion points, key insights, action items and decisions made."
)


def document_filename(executive: str, prompt: str, ext: str, today: Optional[datetime] = None) -> str:
    """{exec}-{slug(prompt)[:30]}-{YYYY-MM-DD}.{ext}"""
    date_str = (today or datetime.utcnow()).strftime("%Y-%m-%d")
    slug = slugify(prompt)[:30].rstrip("-")
    return f"{executive.lower()}-{slug}-{date_str}.{ext}"


def format_transcript(meeting_type: str, messages: List[dict], executive: Optional[str] = None) -> str:
    """Render chat messages as the minutes transcript"""
    lines = []
    if meeting_type == "boardroom":
        for index, msg in enumerate(messages):
            kind = msg.get("type")
            if kind == "user":
                lines.append(f"\n## Discussion Topic {index // 2 + 1}\n**User Question:** {msg.get('content', '')}\n")
            elif kind == "responses":
                lines.append("**Executive Responses:**")
                for r in msg.get("responses") or []:
                    lines.append(f"- **{r.get('executive')} ({r.get('name')}):** {r.get('response')}")
                lines.append("")
            elif kind == "unified":
                lines.append(f"**Unified Recommendation:**\n{msg.get('content', '')}\n")
    else:
        for msg in messages:
            speaker = "User" if msg.get("type") == "user" else (executive or "Executive")
            lines.append(f"**{speaker}:** {msg.get('content', '')}\n")
    return "\n".join(lines)


class DocumentService:
    def __init__(self, executor: AgentExecutor, prompt_cache: PromptCache):
        self.executor = executor
        self.prompt_cache = prompt_cache

    def options(self) -> dict:
        return {
            "file_types": list(FILE_TYPES),
            "executive_specialties": {
                role.value: list(executive.specialties) for role, executive in EXECUTIVES.items()
            },
        }

    async def generate(
        self,
        executive: str,
        prompt: str,
        file_type: str,
        context: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> dict:
        """
        Generate a file's content.

        Returns:
            {content, filename, file_type, mime_type, executive, generated_at}
        """
        exec_info = get_executive(executive)
        if not exec_info or not prompt or file_type not in FILE_TYPES:
            raise ValueError("Executive, prompt, and file_type are required")
        if not self.executor.is_configured:
            raise LLMNotConfigured("ANTHROPIC_API_KEY is not configured")

        ext, mime_type, instructions = FILE_TYPES[file_type]
        system_prompt = (
            f"You are {exec_info.code}, an AI executive assistant specializing in: "
            f"{', '.join(exec_info.specialties)}.\n\n"
            "Your task is to generate a file/document based on the user's request.\n\n"
            f"{instructions}\n\n"
            "IMPORTANT: Output ONLY the file content. No explanations, no markdown code blocks, "
            "no preamble. Just the raw content that should go in the file."
        )
        if company_name:
            system_prompt += f"\n\nCompany context: {company_name}"

        user_prompt = f"Based on our previous discussion:\n{context}\n\nNow generate: {prompt}" if context else prompt

        result = await self.executor.execute(
            system_prompt, [{"role": "user", "content": user_prompt}], max_tokens=DOCUMENT_MAX_TOKENS
        )
        if result.error:
            raise RuntimeError(f"Document generation failed: {result.error}")

        now = datetime.utcnow()
        return {
            "content": strip_code_fences(result.content),
            "filename": document_filename(exec_info.code, prompt, ext, now),
            "file_type": file_type,
            "mime_type": mime_type,
            "executive": exec_info.code,
            "generated_at": now.isoformat(),
            "tokens": result.output_tokens,
        }

    async def minutes(
        self,
        meeting_type: str,
        messages: List[dict],
        executive: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> dict:
        """Markdown minutes for a boardroom or one-on-one session"""
        if not messages:
            raise ValueError("No messages to generate minutes from")
        if meeting_type not in ("boardroom", "individual"):
            raise ValueError("type must be boardroom or individual")
        if not self.executor.is_configured:
            raise LLMNotConfigured("ANTHROPIC_API_KEY is not configured")

        now = datetime.utcnow()
        if meeting_type == "boardroom":
            session = "Executive Boardroom Session"
            attendees = "Attendees: " + ", ".join(f"{e.code} ({e.name})" for e in EXECUTIVES.values())
        else:
            session = f"session with {executive}"
            attendees = f"Attendee: {executive}"

        user_prompt = (
            f"Please generate meeting minutes from this {session}.\n\n"
            f"Company: {company_name or 'Not specified'}\n"
            f"Date: {now.strftime('%A, %B %d, %Y')}\n"
            f"{attendees}\n\n"
            f"**Session Transcript:**\n{format_transcript(meeting_type, messages, executive)}\n\n"
            "Generate professional meeting minutes from this session."
        )
        system_prompt = self.prompt_cache.get_prompt(MINUTES_PROMPT_FILE, fallback=DEFAULT_MINUTES_PROMPT)
        result = await self.executor.execute(
            system_prompt, [{"role": "user", "content": user_prompt}], max_tokens=MINUTES_MAX_TOKENS
        )
        if result.error:
            raise RuntimeError(f"Minutes generation failed: {result.error}")

        date_str = now.strftime("%Y-%m-%d")
        if meeting_type == "boardroom":
            filename = f"boardroom-minutes-{date_str}.md"
        else:
            filename = f"{(executive or 'executive').lower()}-meeting-{date_str}.md"
        return {"minutes": result.content, "filename": filename, "generated_at": now.isoformat()}
