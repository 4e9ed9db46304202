"""
Agent Executor

Creates the Anthropic chat model and dispatches calls to the graphs.
"""
import logging
from typing import AsyncIterator, Dict, List

from langchain_anthropic import ChatAnthropic

from ..models.executive import ExecutiveRole
from .result import AgentResult, BoardroomResult
from .graphs.simple import run_simple_agent, stream_simple_agent
from .graphs.boardroom import run_boardroom

logger = logging.getLogger("studio.agents.executor")


class LLMNotConfigured(RuntimeError):
    """Raised when a call is attempted without an API key"""


class AgentExecutor:
    """
    Central agent executor.

    - execute: one system prompt, one answer
    - stream: same, yielding text chunks
    - boardroom: every executive answers in parallel (LangGraph fan-out)
    """

    def __init__(
        self,
        api_key: str,
        default_model: str,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _create_llm(self, max_tokens: int, temperature: float = 0.7) -> ChatAnthropic:
        """Create a ChatAnthropic instance"""
        if not self.api_key:
            raise LLMNotConfigured("ANTHROPIC_API_KEY is not configured")
        return ChatAnthropic(
            model=self.default_model,
            api_key=self.api_key,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=self.timeout,
        )

    async def execute(
        self,
        system_prompt: str,
        messages: List[dict],
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AgentResult:
        """
        Run a single completion.

        Args:
            system_prompt: System prompt text
            messages: Conversation as [{"role": "user"/"assistant", "content": "..."}]
            max_tokens: Max tokens in response
            temperature: Sampling temperature

        Returns:
            AgentResult with response (error set on failure)
        """
        logger.info(f"Executing agent: model={self.default_model}, messages={len(messages)}, max_tokens={max_tokens}")
        try:
            llm = self._create_llm(max_tokens, temperature)
            return await run_simple_agent(llm, system_prompt, messages)
        except Exception as e:
            logger.error(f"Agent execution failed: {e}")
            return AgentResult(
                content=f"[Error: {e}]",
                model=self.default_model,
                finish_reason="error",
                error=str(e),
            )

    async def stream(
        self,
        system_prompt: str,
        messages: List[dict],
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Stream response text; errors propagate to the caller"""
        llm = self._create_llm(max_tokens, temperature)
        async for text in stream_simple_agent(llm, system_prompt, messages):
            yield text

    async def boardroom(
        self,
        prompts: Dict[ExecutiveRole, str],
        messages: List[dict],
        max_tokens: int = 300,
    ) -> BoardroomResult:
        """Every executive in prompts answers the conversation"""
        logger.info(f"Running boardroom with {len(prompts)} executives")
        llm = self._create_llm(max_tokens)
        return await run_boardroom(llm, prompts, messages)
