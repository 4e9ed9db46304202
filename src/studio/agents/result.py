"""
Agent Result

Unified result dataclass returned by every LLM call path.
"""
from dataclasses import dataclass, field
from typing import Optional, List


@dataclass
class AgentResult:
    """
    Unified result from agent execution.

    Failures are reported through error instead of being raised so that
    fan-out callers can fall back per item.
    """
    content: str                                        # Final text response
    model: str = ""                                     # Model used
    agent_type: str = "simple"                          # simple, boardroom
    input_tokens: int = 0
    output_tokens: int = 0
    finish_reason: str = "stop"                         # stop, error
    error: Optional[str] = None                         # Error message if failed

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def usage(self) -> dict:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass
class ExecutiveResponse:
    """One executive's answer in a boardroom session"""
    executive: str
    name: str
    response: str
    tokens_used: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {"executive": self.executive, "name": self.name, "response": self.response}


@dataclass
class BoardroomResult:
    responses: List[ExecutiveResponse] = field(default_factory=list)

    @property
    def total_tokens(self) -> int:
        return sum(r.tokens_used for r in self.responses)

    def to_dict(self) -> dict:
        return {
            "responses": [r.to_dict() for r in self.responses],
            "total_tokens": self.total_tokens,
        }
