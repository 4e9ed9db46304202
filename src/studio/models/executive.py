"""
Executive Model

The six AI executive personas of the advisor app.
Each persona's system prompt lives in prompts/executives/<code>.md.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ExecutiveRole(str, Enum):
    CFO = "CFO"
    CMO = "CMO"
    COO = "COO"
    CHRO = "CHRO"
    CTO = "CTO"
    CCO = "CCO"


@dataclass(frozen=True)
class Executive:
    """Executive persona configuration"""
    role: ExecutiveRole
    name: str
    title: str
    focus: str                                         # Short description used in boardroom prompts
    specialties: List[str] = field(default_factory=list)  # Document types this executive produces

    @property
    def code(self) -> str:
        return self.role.value

    @property
    def prompt_file(self) -> str:
        return f"executives/{self.role.value.lower()}.md"

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "title": self.title,
            "focus": self.focus,
            "specialties": list(self.specialties),
        }


EXECUTIVES: Dict[ExecutiveRole, Executive] = {
    ExecutiveRole.CFO: Executive(
        ExecutiveRole.CFO, "Alex", "Chief Financial Officer",
        "financial health, cash flow, budgeting and ROI",
        ["Financial reports", "Budget templates", "Cash flow projections", "ROI analyses", "Pricing models"],
    ),
    ExecutiveRole.CMO: Executive(
        ExecutiveRole.CMO, "Jordan", "Chief Marketing Officer",
        "brand, customer acquisition, positioning and growth",
        ["Marketing plans", "Campaign briefs", "Content calendars", "Competitor analyses", "Brand guidelines"],
    ),
    ExecutiveRole.COO: Executive(
        ExecutiveRole.COO, "Morgan", "Chief Operating Officer",
        "operations, processes, efficiency and execution",
        ["Process documentation", "SOP templates", "Project plans", "Efficiency reports", "Vendor comparisons"],
    ),
    ExecutiveRole.CHRO: Executive(
        ExecutiveRole.CHRO, "Taylor", "Chief Human Resources Officer",
        "people, hiring, culture and compensation",
        ["Job descriptions", "Org charts", "Policy documents", "Training plans", "Performance templates"],
    ),
    ExecutiveRole.CTO: Executive(
        ExecutiveRole.CTO, "Riley", "Chief Technology Officer",
        "technology strategy, architecture and security",
        ["Technical specs", "Architecture docs", "Security checklists", "Tech stack comparisons", "API documentation"],
    ),
    ExecutiveRole.CCO: Executive(
        ExecutiveRole.CCO, "Casey", "Chief Compliance Officer",
        "regulation, legal risk, contracts and governance",
        ["Compliance checklists", "Policy templates", "Audit reports", "Risk assessments", "Regulatory guides"],
    ),
}


def get_executive(code: str) -> Optional[Executive]:
    """Look up an executive by code (case-insensitive)"""
    try:
        return EXECUTIVES[ExecutiveRole((code or "").upper())]
    except ValueError:
        return None
