"""
Studio Agent System

LLM execution layer: single calls, streaming and the boardroom fan-out.
"""
from .executor import AgentExecutor, LLMNotConfigured
from .result import AgentResult, BoardroomResult, ExecutiveResponse

__all__ = ['AgentExecutor', 'LLMNotConfigured', 'AgentResult', 'BoardroomResult', 'ExecutiveResponse']
