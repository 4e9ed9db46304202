"""
NVD Fetcher

CVEs mentioning bitcoin from the NIST National Vulnerability Database.
Free API: 5 requests per 30 seconds, 50 with an API key.
"""
import logging
from datetime import datetime
from typing import List, Optional

import httpx

from ..models.signal import ExternalSignal, SignalSeverity, SignalSource
from .base_fetcher import BaseFetcher, extract_bip_references, parse_timestamp

logger = logging.getLogger("studio.feeds.nvd")

NVD_URL = "https://services.nvd.nist.gov/rest/json/cves/2.0?keywordSearch=bitcoin&resultsPerPage=20"

_CVSS_SEVERITY = {
    "CRITICAL": SignalSeverity.CRITICAL,
    "HIGH": SignalSeverity.HIGH,
    "MEDIUM": SignalSeverity.MEDIUM,
    "LOW": SignalSeverity.LOW,
}


def _nvd_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.000")


class NVDFetcher(BaseFetcher):
    source = SignalSource.NVD

    def __init__(self, api_key: str = "", client: Optional[httpx.AsyncClient] = None):
        super().__init__(client)
        self.api_key = api_key

    async def fetch(self, since: Optional[datetime] = None) -> List[ExternalSignal]:
        url = NVD_URL
        if since:
            url += f"&lastModStartDate={_nvd_date(since)}&lastModEndDate={_nvd_date(datetime.utcnow())}"

        headers = {"apiKey": self.api_key} if self.api_key else None
        data = await self.fetch_json(url, headers=headers)
        if not data or not data.get("vulnerabilities"):
            return []

        signals = []
        for item in data["vulnerabilities"]:
            cve = item.get("cve", {})
            cve_id = cve.get("id")
            if not cve_id:
                continue

            description = next(
                (d.get("value", "") for d in cve.get("descriptions", []) if d.get("lang") == "en"),
                "",
            )
            metrics = (cve.get("metrics") or {}).get("cvssMetricV31") or []
            severity = SignalSeverity.UNKNOWN
            if metrics:
                base = metrics[0].get("cvssData", {}).get("baseSeverity", "")
                severity = _CVSS_SEVERITY.get(base.upper(), SignalSeverity.UNKNOWN)

            signals.append(ExternalSignal(
                source=self.source,
                external_id=cve_id,
                source_url=f"https://nvd.nist.gov/vuln/detail/{cve_id}",
                title=cve_id,
                description=description[:2000],
                severity=severity,
                published_date=parse_timestamp(cve.get("published")),
                related_bips=extract_bip_references(description),
                cve_id=cve_id,
            ))

        logger.info(f"NVD returned {len(signals)} signal(s)")
        return signals
