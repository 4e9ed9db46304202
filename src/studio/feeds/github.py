"""
GitHub Fetcher

Bug-labelled issues and pull requests on bitcoin/bitcoin.
"""
import logging
from datetime import datetime
from typing import List, Optional

import httpx

from ..models.signal import ExternalSignal, SignalSeverity, SignalSource
from .base_fetcher import BaseFetcher, extract_bip_references, parse_timestamp

logger = logging.getLogger("studio.feeds.github")

ISSUES_URL = (
    "https://api.github.com/repos/bitcoin/bitcoin/issues"
    "?labels=Bug&sort=updated&direction=desc&per_page=20&state=all"
)


def severity_from_labels(labels: List[str]) -> SignalSeverity:
    names = [label.lower() for label in labels]
    if any("critical" in name or "security" in name for name in names):
        return SignalSeverity.HIGH
    if any("minor" in name or "trivial" in name for name in names):
        return SignalSeverity.LOW
    return SignalSeverity.MEDIUM


class GitHubBitcoinFetcher(BaseFetcher):
    source = SignalSource.GITHUB_BITCOIN

    def __init__(self, token: str = "", client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self.token = token

    async def fetch(self, since: Optional[datetime] = None) -> List[ExternalSignal]:
        url = ISSUES_URL
        if since:
            url += f"&since={since.strftime('%Y-%m-%dT%H:%M:%SZ')}"

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        issues = await self.fetch_json(url, headers=headers)
        if not isinstance(issues, list):
            return []

        signals = []
        for issue in issues:
            title = issue.get("title") or ""
            body = issue.get("body") or ""
            labels = [label.get("name", "") for label in issue.get("labels", [])]

            signals.append(ExternalSignal(
                source=self.source,
                external_id=f"bitcoin-issue-{issue['number']}",
                source_url=issue.get("html_url", ""),
                title=title[:500],
                description=body[:2000],
                severity=severity_from_labels(labels),
                published_date=parse_timestamp(issue.get("created_at")),
                related_bips=extract_bip_references(f"{title} {body}"),
            ))

        logger.info(f"GitHub returned {len(signals)} signal(s)")
        return signals
