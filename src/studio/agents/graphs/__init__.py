"""Agent Graph Implementations"""
from .simple import run_simple_agent, stream_simple_agent
from .boardroom import run_boardroom, APOLOGY

__all__ = ['run_simple_agent', 'stream_simple_agent', 'run_boardroom', 'APOLOGY']
