"""
Company Model

Business profile used to ground executive advice.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from uuid import UUID, uuid4


@dataclass
class Company:
    """Company profile, one per user"""
    id: UUID = field(default_factory=uuid4)
    user_id: UUID = field(default_factory=uuid4)
    name: str = ""
    industry: Optional[str] = None
    size: Optional[str] = None                  # e.g. "11-50"
    annual_revenue: Optional[float] = None
    currency: str = "USD"
    goals: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def context_block(self) -> str:
        """Render the company as a prompt section"""
        lines = ["", "## Company Context", f"- Company: {self.name}"]
        if self.industry:
            lines.append(f"- Industry: {self.industry}")
        if self.size:
            lines.append(f"- Size: {self.size} employees")
        if self.annual_revenue is not None:
            lines.append(f"- Annual Revenue: {self.currency} {self.annual_revenue:,.0f}")
        if self.goals:
            lines.append(f"- Goals: {', '.join(self.goals)}")
        if self.challenges:
            lines.append(f"- Challenges: {', '.join(self.challenges)}")
        lines.append("")
        lines.append("Tailor your advice to this company's situation.")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "name": self.name,
            "industry": self.industry,
            "size": self.size,
            "annual_revenue": self.annual_revenue,
            "currency": self.currency,
            "goals": self.goals,
            "challenges": self.challenges,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
