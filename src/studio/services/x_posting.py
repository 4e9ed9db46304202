"""
X Posting Service

Announces risk-register events on X. Guarded by a kill switch, per-entity
24h dedup and a rolling hourly cap; every attempt is recorded in x_posts.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, TYPE_CHECKING

from ..config import Config
from ..models.audit import EntityAuditEntry
from ..models.x_post import XPost

if TYPE_CHECKING:
    from ..models.bip import BIPEvaluation
    from ..models.fud import FUDAnalysis
    from ..models.threat import Threat, Vulnerability
    from ..notifications.x_sender import XSender
    from ..storage.entity_audit_storage import EntityAuditStorage
    from ..storage.x_post_storage import XPostStorage

logger = logging.getLogger("studio.services.x_posting")

MAX_POST_LENGTH = 280
DEDUP_WINDOW = timedelta(hours=24)


def truncate(text: str, max_length: int) -> str:
    """Cut text to max_length, marking the cut with an ellipsis"""
    if len(text) <= max_length:
        return text
    return text[:max_length - 1] + "…"


# ============================================
# Formatters (each result fits in one post)
# ============================================

def format_threat_post(threat: Threat, site_url: str = Config.SITE_URL) -> str:
    name = truncate(threat.name, 140)
    text = (
        f"{threat.risk_rating.value} threat detected: {name} (Score: {threat.severity_score}/25)"
        f"\n\n{site_url}/threats\n\n#Bitcoin #Security #RiskManagement"
    )
    return truncate(text, MAX_POST_LENGTH)


def format_fud_debunked_post(fud: FUDAnalysis, site_url: str = Config.SITE_URL) -> str:
    narrative = truncate(fud.narrative, 150)
    text = f"FUD debunked: {narrative} | Validity: {fud.validity_score}%\n\n{site_url}/fud\n\n#Bitcoin #FUD"
    return truncate(text, MAX_POST_LENGTH)


def format_bip_change_post(bip: BIPEvaluation, old_value: str, new_value: str, site_url: str = Config.SITE_URL) -> str:
    text = f"BIP-{bip.number} recommendation: {old_value} → {new_value}\n\n{site_url}/bips\n\n#Bitcoin #BIP"
    return truncate(text, MAX_POST_LENGTH)


def format_bip_evaluated_post(bip: BIPEvaluation, site_url: str = Config.SITE_URL) -> str:
    text = (
        f"BIP-{bip.number} evaluated: {bip.recommendation.value} (Necessity: {bip.necessity_score}/100)"
        f"\n\n{site_url}/bips\n\n#Bitcoin #BIP"
    )
    return truncate(text, MAX_POST_LENGTH)


def format_vulnerability_post(vuln: Vulnerability, site_url: str = Config.SITE_URL) -> str:
    name = truncate(vuln.name, 150)
    text = f"{vuln.vulnerability_rating.value} vulnerability: {name}\n\n{site_url}/vulnerabilities\n\n#Bitcoin #Security"
    return truncate(text, MAX_POST_LENGTH)


def format_weekly_summary_post(stats: dict, previous: Optional[dict] = None, site_url: str = Config.SITE_URL) -> str:
    """
    Weekly roll-up.

    stats needs totalRisks, criticalHighRiskCount, totalThreats,
    totalVulnerabilities and activeRemediations.
    """
    text = "Weekly Bitcoin Risk Summary:\n"
    text += f"• {stats['totalRisks']} risks ({stats['criticalHighRiskCount']} critical/high)\n"
    text += f"• {stats['totalThreats']} threats, {stats['totalVulnerabilities']} vulns\n"
    text += f"• {stats['activeRemediations']} remediations active\n"

    if previous:
        delta = stats["totalRisks"] - previous.get("totalRisks", 0)
        if delta > 0:
            text += f"• +{delta} new risks this week\n"
        elif delta < 0:
            text += f"• {delta} risks resolved this week\n"

    text += f"\n{site_url}\n\n#Bitcoin #RiskManagement"
    return truncate(text, MAX_POST_LENGTH)


class XPostingService:
    """Publish to X with kill switch, dedup and hourly rate cap"""

    def __init__(
        self,
        post_storage: XPostStorage,
        entity_audit_storage: EntityAuditStorage,
        sender: Optional[XSender] = None,
        enabled: bool = False,
        max_per_hour: int = 15,
    ):
        self.post_storage = post_storage
        self.entity_audit_storage = entity_audit_storage
        self.sender = sender
        self.enabled = enabled
        self.max_per_hour = max_per_hour

    @property
    def is_enabled(self) -> bool:
        return self.enabled and self.sender is not None and bool(self.sender.access_token)

    async def publish(
        self,
        content: str,
        trigger: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> dict:
        """
        Post content.

        Returns:
            {"posted": True, "post_id": ...} or {"posted": False, "reason": ...}
        """
        if not self.is_enabled:
            logger.debug(f"X posting disabled, skipped: {content[:80]}")
            return {"posted": False, "reason": "disabled"}

        now = datetime.utcnow()
        if entity_type and entity_id:
            if await self.post_storage.posted_since(entity_type, entity_id, now - DEDUP_WINDOW):
                return {"posted": False, "reason": "dedup"}

        if await self.post_storage.count_posted_since(now - timedelta(hours=1)) >= self.max_per_hour:
            logger.warning("X posting hourly cap reached")
            return {"posted": False, "reason": "rate_limited"}

        record = await self.post_storage.create(XPost(
            content=content,
            entity_type=entity_type or "general",
            entity_id=entity_id,
            trigger=trigger,
        ))

        result = await self.sender.send(content)
        if not result.success:
            await self.post_storage.mark_failed(record.id, result.error or "Unknown error")
            return {"posted": False, "reason": result.error or "Unknown error"}

        await self.post_storage.mark_posted(record.id, result.post_id)
        await self.entity_audit_storage.append(EntityAuditEntry(
            entity_type="x_post",
            entity_id=str(record.id),
            action="posted",
            user_id="system:x-bot",
            user_name="@BitcoinRMF",
            diff={"trigger": trigger, "entity_type": entity_type, "entity_id": entity_id, "post_id": result.post_id},
        ))
        return {"posted": True, "post_id": result.post_id}

    async def list_recent(self, limit: int = 50):
        return await self.post_storage.list_recent(limit)
