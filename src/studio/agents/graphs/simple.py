"""
Simple Agent Graph

Direct prompt -> LLM -> response call, plus the streaming variant.
"""
import logging
from typing import AsyncIterator, List

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import SystemMessage, HumanMessage, AIMessage, BaseMessage

from ..result import AgentResult

logger = logging.getLogger("studio.agents.graphs.simple")


def to_langchain_messages(system_prompt: str, messages: List[dict]) -> List[BaseMessage]:
    """
    Build LangChain message objects.

    Args:
        system_prompt: System prompt text
        messages: Conversation as [{"role": "user"/"assistant", "content": "..."}]
    """
    lc_messages: List[BaseMessage] = []
    if system_prompt:
        lc_messages.append(SystemMessage(content=system_prompt))

    for msg in messages:
        role = msg.get("role", "user")
        content = msg.get("content", "")
        if role == "user":
            lc_messages.append(HumanMessage(content=content))
        elif role == "assistant":
            lc_messages.append(AIMessage(content=content))
    return lc_messages


def message_text(content) -> str:
    """Text of a message or chunk; Anthropic may return a list of content blocks"""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type", "text") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def _model_name(llm: BaseChatModel) -> str:
    return getattr(llm, "model", "") or getattr(llm, "model_name", "") or ""


async def run_simple_agent(
    llm: BaseChatModel,
    system_prompt: str,
    messages: List[dict],
) -> AgentResult:
    """
    Run a single LLM call.

    Returns:
        AgentResult with response content and token usage
    """
    lc_messages = to_langchain_messages(system_prompt, messages)
    try:
        response = await llm.ainvoke(lc_messages)
        usage = getattr(response, "usage_metadata", None) or {}

        return AgentResult(
            content=message_text(response.content),
            model=_model_name(llm),
            agent_type="simple",
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
            finish_reason="stop",
        )
    except Exception as e:
        logger.error(f"Direct LLM call failed: {e}")
        return AgentResult(
            content=f"[Error: {e}]",
            model=_model_name(llm),
            agent_type="simple",
            finish_reason="error",
            error=str(e),
        )


async def stream_simple_agent(
    llm: BaseChatModel,
    system_prompt: str,
    messages: List[dict],
) -> AsyncIterator[str]:
    """Yield response text as it arrives"""
    lc_messages = to_langchain_messages(system_prompt, messages)
    async for chunk in llm.astream(lc_messages):
        text = message_text(chunk.content)
        if text:
            yield text
