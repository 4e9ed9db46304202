"""
Skill Service

Structured executive analyses over uploaded files and form text
(budget analysis, contract review, code review, ...). Each skill has a
prompt template in prompts/skills/<exec>/<skill>.md with a {content}
placeholder, and a fallback analysis used when the model output is not
valid JSON.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..agents.executor import LLMNotConfigured
from ..security.sanitize import extract_json
from .errors import NotFoundError
from .prompt_cache import PromptCache

if TYPE_CHECKING:
    from ..agents.executor import AgentExecutor

logger = logging.getLogger("studio.services.skills")

SKILL_MAX_TOKENS = 8000
MAX_FILE_CHARS = 30000


@dataclass(frozen=True)
class Skill:
    executive: str                       # lower-case executive code
    slug: str
    title: str
    fields: Tuple[Tuple[str, str], ...]  # (form field, label in the prompt)
    empty_error: str
    sections: Tuple[str, ...] = ()       # List sections of the JSON result
    fallback_note: str = "The analysis could not be fully parsed. Please provide more detail."
    fallback_recommendations: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return f"{self.executive}/{self.slug}"

    @property
    def prompt_file(self) -> str:
        return f"skills/{self.key}.md"

    def fallback(self) -> dict:
        analysis = {"summary": {"status": "incomplete", "note": self.fallback_note}}
        for section in self.sections:
            analysis[section] = []
        analysis["recommendations"] = list(self.fallback_recommendations)
        return analysis

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "executive": self.executive.upper(),
            "slug": self.slug,
            "title": self.title,
            "fields": [name for name, _ in self.fields],
        }


_SKILL_LIST = [
    Skill("cco", "compliance-audit", "Compliance Audit",
          (("complianceInfo", "Additional compliance information"),),
          "No compliance information provided",
          ("areas", "gaps", "metrics", "strengths"),
          fallback_recommendations=("Describe your industry and the regulations that apply",)),
    Skill("cco", "contract-review", "Contract Review",
          (("contractText", "Contract Text"), ("context", "Context")),
          "No contract provided",
          ("keyTerms", "clauses", "risks", "missingClauses", "negotiationPoints"),
          fallback_recommendations=("Have a qualified attorney review the contract",)),
    Skill("cco", "risk-assessment", "Risk Assessment",
          (("riskInfo", "Additional risk information"),),
          "No risk information provided",
          ("categories", "risks", "heatmapData", "mitigationPriorities"),
          "Could not fully assess risks.",
          ("Provide more business details",)),
    Skill("cfo", "budget-analysis", "Budget Analysis",
          (("budgetData", "Additional budget data"),),
          "No budget data provided",
          ("lineItems", "insights"),
          "The budget data could not be fully parsed. Please check the format.",
          ("Provide clearer budget data format", "Include category labels",
           "Ensure numeric values are properly formatted")),
    Skill("cfo", "pricing-strategy", "Pricing Strategy",
          (("pricingInfo", "Additional pricing information"),),
          "No pricing information provided",
          ("tiers", "issues", "competitors", "strategies"),
          "Could not fully analyze pricing. Please provide more details."),
    Skill("chro", "compensation-analysis", "Compensation Analysis",
          (("compInfo", "Additional compensation information"),),
          "No compensation data provided",
          ("roles", "issues", "metrics", "equityAnalysis"),
          "Need more compensation details.",
          ("Provide role titles, levels, and current salaries",)),
    Skill("chro", "job-description-review", "Job Description Review",
          (("jobDescription", "Job description"),),
          "No job description provided",
          ("issues", "biasFlags", "missingElements", "strengths", "rewriteSuggestions"),
          "Provide a complete job description.",
          ("Include title, responsibilities, and requirements",)),
    Skill("chro", "org-review", "Org Review",
          (("orgInfo", "Additional org information"),),
          "No org structure information provided",
          ("units", "metrics", "issues", "strengths"),
          "Provide detailed org structure.",
          ("Include headcounts and reporting relationships",)),
    Skill("cmo", "competitor-analysis", "Competitor Analysis",
          (("competitorInfo", "Additional competitor information"),),
          "No competitor information provided",
          ("competitors", "insights", "strategies"),
          "Please provide more details about your competitors."),
    Skill("cmo", "content-review", "Content Review",
          (("content", "Content"), ("contentUrl", "Content URL")),
          "No content provided",
          ("pieces", "issues"),
          "Could not identify distinct content pieces."),
    Skill("coo", "capacity-planning", "Capacity Planning",
          (("capacityInfo", "Additional capacity information"),),
          "No capacity information provided",
          ("resources", "issues", "forecasts", "scalingOptions"),
          "Provide detailed resource information.",
          ("Include team sizes, workloads, and growth projections",)),
    Skill("coo", "sop-analysis", "SOP Analysis",
          (("sopDescription", "SOP description"),),
          "No SOP information provided",
          ("documents", "issues", "gaps", "bestPractices"),
          "Could not fully analyze SOPs.",
          ("Upload actual SOP documents for detailed analysis",)),
    Skill("cto", "architecture-review", "Architecture Review",
          (("description", "Architecture Description provided by user"),),
          "Please provide an architecture description or upload files",
          ("patterns", "issues", "strengths"),
          "Unable to fully parse the architecture. Please provide more details or try again.",
          ("Provide more detailed architecture documentation",
           "Include system diagrams or configuration files",
           "Describe the technology stack and deployment environment")),
    Skill("cto", "code-review", "Code Review",
          (),
          "No valid code files provided",
          ("findings",),
          "Code was analyzed but detailed findings could not be parsed. Please try again."),
    Skill("cto", "dependency-audit", "Dependency Audit",
          (("packageFile", "Package file content"), ("lockFile", "Lock file content (for exact versions)")),
          "Package file is required",
          ("dependencies",),
          "Dependencies could not be fully audited."),
]

SKILLS: Dict[str, Skill] = {skill.key: skill for skill in _SKILL_LIST}


def get_skill(executive: str, slug: str) -> Optional[Skill]:
    return SKILLS.get(f"{(executive or '').lower()}/{slug}")


def decode_files(files: Sequence[Tuple[str, bytes]]) -> List[Tuple[str, str]]:
    """UTF-8 text of each upload; binary files are skipped"""
    decoded = []
    for name, data in files:
        try:
            decoded.append((name, data.decode("utf-8")))
        except UnicodeDecodeError:
            logger.info(f"Skipping binary file: {name}")
    return decoded


def build_content(skill: Skill, files: Sequence[Tuple[str, str]], fields: Dict[str, str]) -> str:
    """Files as --- name --- blocks, followed by the skill's text fields"""
    parts = [f"--- {name} ---\n{text[:MAX_FILE_CHARS]}\n---" for name, text in files]
    content = "\n\n".join(parts)
    for name, label in skill.fields:
        value = (fields.get(name) or "").strip()
        if value:
            content += f"\n\n{label}:\n{value[:MAX_FILE_CHARS]}"
    return content.strip()


class SkillService:
    def __init__(self, executor: AgentExecutor, prompt_cache: PromptCache):
        self.executor = executor
        self.prompt_cache = prompt_cache

    def list_skills(self) -> List[dict]:
        return [skill.to_dict() for skill in _SKILL_LIST]

    async def run(
        self,
        executive: str,
        slug: str,
        files: Sequence[Tuple[str, bytes]],
        fields: Dict[str, str],
    ) -> dict:
        """
        Run a skill analysis.

        Args:
            executive: Executive code, e.g. "cfo"
            slug: Skill name, e.g. "budget-analysis"
            files: Uploaded (filename, bytes) pairs
            fields: Form text fields

        Returns:
            {"analysis": {...}}

        Raises:
            NotFoundError: Unknown skill
            ValueError: No usable input
            LLMNotConfigured: No API key
        """
        skill = get_skill(executive, slug)
        if not skill:
            raise NotFoundError(f"Unknown skill: {executive}/{slug}")

        content = build_content(skill, decode_files(files), fields)
        if not content:
            raise ValueError(skill.empty_error)
        if not self.executor.is_configured:
            raise LLMNotConfigured("ANTHROPIC_API_KEY is not configured")

        template = self.prompt_cache.get_prompt(skill.prompt_file, fallback="{content}")
        prompt = template.replace("{content}", content)

        result = await self.executor.execute("", [{"role": "user", "content": prompt}], max_tokens=SKILL_MAX_TOKENS)
        if result.error:
            raise RuntimeError(f"Failed to run {skill.title}: {result.error}")

        try:
            analysis = json.loads(extract_json(result.content))
        except ValueError:
            logger.warning(f"Skill {skill.key} returned unparseable output, using fallback")
            analysis = skill.fallback()
        return {"analysis": analysis}
