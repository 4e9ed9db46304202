"""
Risk Analysis Service

One-shot LLM drafts for the risk submission forms: the user pastes a
threat, vulnerability or FUD narrative and gets back a structured JSON
draft to review before submitting.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..agents.executor import LLMNotConfigured
from ..security.sanitize import extract_json, sanitize_input
from .prompt_cache import PromptCache

if TYPE_CHECKING:
    from ..agents.executor import AgentExecutor

logger = logging.getLogger("studio.services.risk_analysis")

ANALYSIS_MAX_TOKENS = 4096
MAX_INPUT_LENGTH = 5000


@dataclass(frozen=True)
class AnalysisKind:
    prompt_file: str
    subject: str          # Used in the user message
    required_error: str
    too_long_error: str


ANALYSIS_KINDS = {
    "threat": AnalysisKind(
        "system/analyze_threat.md",
        "Bitcoin threat",
        "Threat description is required",
        "Description too long (max 5,000 characters)",
    ),
    "vulnerability": AnalysisKind(
        "system/analyze_vulnerability.md",
        "Bitcoin vulnerability",
        "Vulnerability description is required",
        "Description too long (max 5,000 characters)",
    ),
    "fud": AnalysisKind(
        "system/analyze_fud.md",
        "Bitcoin FUD narrative",
        "FUD narrative is required",
        "Narrative too long (max 5,000 characters)",
    ),
}


class RiskAnalysisService:
    def __init__(self, executor: AgentExecutor, prompt_cache: PromptCache):
        self.executor = executor
        self.prompt_cache = prompt_cache

    async def analyze(self, kind: str, text: str) -> dict:
        """
        Draft a structured analysis.

        Args:
            kind: "threat", "vulnerability" or "fud"
            text: Description (or narrative) from the form

        Returns:
            {"analysis": {...}, "usage": {"input_tokens", "output_tokens"}}

        Raises:
            ValueError: Unknown kind, missing or over-long text
            LLMNotConfigured: No API key
            RuntimeError: LLM failure or unparseable output
        """
        analysis_kind = ANALYSIS_KINDS.get(kind)
        if analysis_kind is None:
            raise ValueError(f"Unknown analysis type: {kind}")
        if not isinstance(text, str) or not text.strip():
            raise ValueError(analysis_kind.required_error)
        if len(text) > MAX_INPUT_LENGTH:
            raise ValueError(analysis_kind.too_long_error)
        if not self.executor.is_configured:
            raise LLMNotConfigured("ANTHROPIC_API_KEY is not configured")

        system_prompt = self.prompt_cache.get_prompt(analysis_kind.prompt_file, fallback="Return only valid JSON.")
        message = f"Analyze this {analysis_kind.subject}:\n\n{sanitize_input(text)}"

        result = await self.executor.execute(
            system_prompt, [{"role": "user", "content": message}], max_tokens=ANALYSIS_MAX_TOKENS
        )
        if result.error:
            logger.error(f"{kind} analysis failed: {result.error}")
            raise RuntimeError("AI service temporarily unavailable")

        try:
            analysis = json.loads(extract_json(result.content))
        except ValueError:
            logger.warning(f"{kind} analysis returned unparseable output")
            raise RuntimeError("Failed to parse AI response")

        return {"analysis": analysis, "usage": result.usage}
