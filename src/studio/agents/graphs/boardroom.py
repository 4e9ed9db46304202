"""
Boardroom Graph

LangGraph StateGraph that fans a question out to every executive in
parallel. Each executive node appends its answer to the shared state;
a failing executive contributes an apology instead of failing the run.
"""
import logging
import operator
from typing import Annotated, Dict, List, TypedDict

from langchain_core.language_models import BaseChatModel
from langgraph.graph import StateGraph, START, END

from ...models.executive import EXECUTIVES, ExecutiveRole
from ..result import BoardroomResult, ExecutiveResponse
from .simple import run_simple_agent

logger = logging.getLogger("studio.agents.graphs.boardroom")

APOLOGY = "I apologize, but I'm unable to respond at the moment. Please try again."


class BoardroomState(TypedDict):
    """State shared by executive nodes"""
    messages: List[dict]
    responses: Annotated[List[ExecutiveResponse], operator.add]


async def run_boardroom(
    llm: BaseChatModel,
    prompts: Dict[ExecutiveRole, str],
    messages: List[dict],
) -> BoardroomResult:
    """
    Ask every executive in prompts the same question.

    Args:
        llm: Chat model configured with the per-executive token budget
        prompts: System prompt for each participating executive
        messages: Conversation ending with the user's question

    Returns:
        BoardroomResult ordered like EXECUTIVES
    """
    builder = StateGraph(BoardroomState)

    for role, system_prompt in prompts.items():
        node_id = role.value
        builder.add_node(node_id, _make_executive_node(llm, role, system_prompt))
        builder.add_edge(START, node_id)
        builder.add_edge(node_id, END)

    graph = builder.compile()
    state = await graph.ainvoke({"messages": messages, "responses": []})

    order = {role.value: index for index, role in enumerate(EXECUTIVES)}
    responses = sorted(state.get("responses", []), key=lambda r: order.get(r.executive, len(order)))
    return BoardroomResult(responses=responses)


def _make_executive_node(llm: BaseChatModel, role: ExecutiveRole, system_prompt: str):
    """Create an async node function for one executive"""
    executive = EXECUTIVES[role]

    async def node_fn(state: BoardroomState) -> dict:
        result = await run_simple_agent(llm, system_prompt, state["messages"])
        if result.error or not result.content.strip():
            logger.warning(f"Boardroom response failed for {role.value}: {result.error}")
            response = ExecutiveResponse(role.value, executive.name, APOLOGY, error=result.error or "empty")
        else:
            response = ExecutiveResponse(role.value, executive.name, result.content, result.tokens_used)
        return {"responses": [response]}

    return node_fn
