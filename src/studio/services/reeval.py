"""
BIP Re-evaluation

Queue and evaluator for AI re-assessment of BIPs. Items are processed
by priority under a daily budget; each evaluation reads the BIP text from
GitHub and the related threats and vulnerabilities from the register.
"""
import json
import logging
from datetime import datetime
from typing import List, Optional, Sequence

import httpx

from ..feeds.base_fetcher import FETCH_TIMEOUT, USER_AGENT
from ..models.audit import EntityAuditEntry
from ..models.bip import BIPEvaluation, BIPRecommendation
from ..models.signal import ReEvalTrigger
from ..security.sanitize import extract_json
from .x_posting import format_bip_change_post, format_bip_evaluated_post

logger = logging.getLogger("studio.services.reeval")

BIP_RAW_URL = "https://raw.githubusercontent.com/bitcoin/bips/master/bip-{number:04d}.{ext}"
BIP_PROMPT_FILE = "system/bip_evaluate.md"
PIPELINE_ACTOR = "system:pipeline"
PIPELINE_NAME = "Monitoring Pipeline"

_SCORE_FIELDS = {
    "necessityScore": "necessity_score",
    "mitigationEffectiveness": "mitigation_effectiveness",
    "communityConsensus": "community_consensus",
    "implementationReadiness": "implementation_readiness",
    "adoptionPercentage": "adoption_percentage",
}

DEFAULT_BIP_PROMPT = (
    "You are an expert Bitcoin protocol analyst. Evaluate the BIP against the "
    "threat landscape and return ONLY a JSON object with summary, recommendation "
    "(ESSENTIAL|RECOMMENDED|OPTIONAL|UNNECESSARY|HARMFUL), necessityScore, "
    "threatsAddressed, mitigationEffectiveness, communityConsensus, "
    "implementationReadiness, economicImpact and adoptionPercentage."
)


def build_risk_context(bip_label: str, threats: Sequence, vulns: Sequence) -> str:
    """Describe the register entries that reference a BIP, for the evaluation prompt"""
    if not threats and not vulns:
        return ""

    lines = [
        "",
        "",
        "--- System Risk Context ---",
        f"This BIP ({bip_label}) is referenced by {len(threats)} threat(s) and "
        f"{len(vulns)} vulnerability(ies) in the system.",
        "",
    ]
    if threats:
        lines.append("Related Threats:")
        for t in threats:
            lines.append(
                f'- ID: "{t.id}" | Name: "{t.name}" | Rating: {t.risk_rating.value} | '
                f"Score: {t.severity_score}/25 | STRIDE: {t.stride_category.value} | "
                f"Likelihood: {t.likelihood}/5"
            )
        lines.append("")
    if vulns:
        lines.append("Related Vulnerabilities:")
        for v in vulns:
            lines.append(
                f'- ID: "{v.id}" | Name: "{v.name}" | Rating: {v.vulnerability_rating.value} | '
                f"Score: {v.vulnerability_score}/25 | Severity: {v.severity}/5"
            )
        lines.append("")

    pairings = [
        f'- "{t.name}" x "{v.name}": risk score {t.likelihood * v.severity}/25'
        for t in threats for v in vulns
    ]
    if pairings:
        lines.append("Derived Risk Pairings:")
        lines.extend(pairings)
    lines.append("")
    lines.append("Use the threat IDs above in your threatsAddressed array.")
    return "\n".join(lines) + "\n"


def apply_evaluation(bip: BIPEvaluation, evaluation: dict, trigger: str) -> None:
    """Copy AI evaluation fields onto the BIP; missing or malformed fields keep their value"""
    if isinstance(evaluation.get("summary"), str):
        bip.summary = evaluation["summary"]
    if isinstance(evaluation.get("economicImpact"), str):
        bip.economic_impact = evaluation["economicImpact"]
    try:
        bip.recommendation = BIPRecommendation(evaluation.get("recommendation"))
    except ValueError:
        logger.warning(f"Ignoring unknown recommendation for {bip.bip_number}: {evaluation.get('recommendation')}")
    for key, attr in _SCORE_FIELDS.items():
        value = evaluation.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            setattr(bip, attr, max(0, min(100, int(round(value)))))
    if isinstance(evaluation.get("threatsAddressed"), list):
        bip.threats_addressed = [str(t) for t in evaluation["threatsAddressed"]]
    bip.last_evaluated_at = datetime.utcnow()
    bip.evaluation_trigger = trigger


class ReEvalService:
    """Re-evaluation queue processing and single-BIP evaluation"""

    def __init__(
        self,
        reeval_storage,
        bip_storage,
        threat_storage,
        vulnerability_storage,
        entity_audit_storage,
        executor,
        prompt_cache,
        x_posting=None,
        batch_size: int = 5,
        max_daily: int = 50,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.reeval_storage = reeval_storage
        self.bip_storage = bip_storage
        self.threat_storage = threat_storage
        self.vulnerability_storage = vulnerability_storage
        self.entity_audit_storage = entity_audit_storage
        self.executor = executor
        self.prompt_cache = prompt_cache
        self.x_posting = x_posting
        self.batch_size = batch_size
        self.max_daily = max_daily
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=FETCH_TIMEOUT, headers={"User-Agent": USER_AGENT})
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ============================================
    # Queue
    # ============================================

    async def queue_reevaluations(self, triggers: Sequence[ReEvalTrigger]) -> int:
        """Queue triggers; BIPs that already have a pending item are not queued again"""
        queued = 0
        for trigger in triggers:
            if await self.reeval_storage.enqueue(trigger):
                queued += 1
        return queued

    async def remaining_daily_budget(self) -> int:
        used = await self.reeval_storage.count_completed_since(datetime.utcnow().date())
        return max(0, self.max_daily - used)

    async def process_queue(self, max_items: Optional[int] = None) -> dict:
        """
        Evaluate pending items.

        Returns:
            {processed, succeeded, failed, skipped, results}
        """
        result = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0, "results": []}

        remaining = await self.remaining_daily_budget()
        if remaining <= 0:
            logger.info("Daily re-evaluation budget exhausted")
            return result

        batch = min(max_items or self.batch_size, remaining)
        items = await self.reeval_storage.next_pending(batch)

        for item in items:
            if item.attempts >= item.max_attempts:
                await self.reeval_storage.mark_failed(item.id, "Max attempts reached")
                result["skipped"] += 1
                continue

            attempts = item.attempts + 1
            await self.reeval_storage.mark_processing(item.id, attempts)
            result["processed"] += 1

            try:
                outcome = await self.evaluate_bip(item.bip_id, item.reason)
            except Exception as e:
                logger.error(f"Re-evaluation of {item.bip_id} raised: {e}")
                outcome = {"success": False, "error": str(e)}

            if outcome["success"]:
                await self.reeval_storage.mark_completed(item.id)
                await self.entity_audit_storage.append(EntityAuditEntry(
                    entity_type="bip",
                    entity_id=item.bip_id,
                    action="auto_reeval",
                    user_id=PIPELINE_ACTOR,
                    user_name=PIPELINE_NAME,
                    diff={"reason": item.reason, "source_id": item.source_id},
                ))
                result["succeeded"] += 1
            else:
                error = outcome.get("error") or "Unknown error"
                if attempts >= item.max_attempts:
                    await self.reeval_storage.mark_failed(item.id, error)
                else:
                    await self.reeval_storage.mark_pending(item.id, error)
                result["failed"] += 1

            result["results"].append({
                "bip_id": item.bip_id,
                "success": outcome["success"],
                "error": outcome.get("error"),
                "trigger": item.reason,
            })

        logger.info(
            f"Re-eval queue: {result['processed']} processed, {result['succeeded']} succeeded, "
            f"{result['failed']} failed, {result['skipped']} skipped"
        )
        return result

    # ============================================
    # Evaluation
    # ============================================

    async def fetch_bip_content(self, number: int) -> Optional[str]:
        """Raw BIP text from the bitcoin/bips repository, mediawiki first"""
        client = self._get_client()
        for ext in ("mediawiki", "md"):
            url = BIP_RAW_URL.format(number=number, ext=ext)
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                logger.warning(f"BIP fetch failed for {url}: {e}")
                continue
            if response.status_code == 200:
                return response.text
        return None

    async def evaluate_bip(self, bip_id: str, trigger: str = "manual") -> dict:
        """
        Run the AI evaluation for one BIP and store the result.

        Returns:
            {"success": True, "evaluation": {...}} or {"success": False, "error": "..."}
        """
        if not self.executor.is_configured:
            return {"success": False, "error": "ANTHROPIC_API_KEY not configured"}

        bip = await self.bip_storage.get_by_id(bip_id)
        if not bip:
            return {"success": False, "error": f"BIP not found: {bip_id}"}

        number = bip.number
        content = await self.fetch_bip_content(number)
        if content is None:
            return {"success": False, "error": f"Could not fetch BIP content from GitHub (tried bip-{number:04d})"}

        short_label = f"BIP-{number}"
        variants = list(dict.fromkeys([bip.bip_number, short_label]))
        threats = await self.threat_storage.list_related_to_bip(variants)
        vulns = await self.vulnerability_storage.list_related_to_bip(variants)

        prompt = (
            f'Evaluate {bip.bip_number} ("{bip.title}"):'
            f"{build_risk_context(short_label, threats, vulns)}\n\n{content}"
        )
        system_prompt = self.prompt_cache.get_prompt(BIP_PROMPT_FILE, fallback=DEFAULT_BIP_PROMPT)
        response = await self.executor.execute(
            system_prompt, [{"role": "user", "content": prompt}], max_tokens=4096
        )
        if response.error:
            return {"success": False, "error": response.error}

        try:
            evaluation = json.loads(extract_json(response.content))
        except ValueError:
            return {"success": False, "error": "Failed to parse AI response"}
        if not isinstance(evaluation, dict):
            return {"success": False, "error": "Failed to parse AI response"}

        previous = bip.recommendation
        first_evaluation = bip.last_evaluated_at is None
        apply_evaluation(bip, evaluation, trigger)
        try:
            updated = await self.bip_storage.update(bip)
        except Exception as e:
            logger.error(f"BIP update failed for {bip_id}: {e}")
            return {"success": False, "error": f"DB update failed: {e}"}

        await self._announce(updated, previous, first_evaluation)
        logger.info(f"Evaluated {bip.bip_number}: {updated.recommendation.value} ({trigger})")
        return {"success": True, "evaluation": evaluation}

    async def _announce(self, bip: BIPEvaluation, previous: BIPRecommendation, first_evaluation: bool) -> None:
        if self.x_posting is None:
            return
        if bip.recommendation != previous:
            content = format_bip_change_post(bip, previous.value, bip.recommendation.value)
            await self.x_posting.publish(content, "bip_recommendation_change", "bip", bip.id)
        elif first_evaluation:
            await self.x_posting.publish(format_bip_evaluated_post(bip), "bip_evaluated", "bip", bip.id)
