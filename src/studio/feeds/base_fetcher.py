"""
Base Fetcher

Shared httpx plumbing for threat-signal feeds.
Every fetch failure is logged and reported as None so one bad source
never fails a scan.
"""
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from ..models.signal import ExternalSignal, SignalSource

logger = logging.getLogger("studio.feeds")

USER_AGENT = "BitcoinRMF/1.0"
FETCH_TIMEOUT = 15.0

BIP_REGEX = re.compile(r"\bBIP[-\s]?(\d{1,4})\b", re.IGNORECASE)


def extract_bip_references(text: str) -> List[str]:
    """BIP numbers mentioned in text as BIP-n, first occurrence order"""
    found: List[str] = []
    for match in BIP_REGEX.finditer(text or ""):
        number = int(match.group(1))
        ref = f"BIP-{number}"
        if 0 < number < 10000 and ref not in found:
            found.append(ref)
    return found


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO timestamp to naive UTC, None when unparseable"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class BaseFetcher(ABC):
    """Abstract threat-signal feed"""

    source: SignalSource

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=FETCH_TIMEOUT, headers={"User-Agent": USER_AGENT})
        return self._client

    async def fetch_json(self, url: str, headers: Optional[dict] = None):
        """GET url and decode JSON, None on any failure"""
        try:
            response = await self._get_client().get(url, headers=headers)
            if response.status_code != 200:
                logger.warning(f"{self.source.value} fetch failed: HTTP {response.status_code}")
                return None
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"{self.source.value} fetch error: {e}")
            return None

    async def fetch_text(self, url: str) -> Optional[str]:
        try:
            response = await self._get_client().get(url)
            if response.status_code != 200:
                logger.warning(f"{self.source.value} fetch failed: HTTP {response.status_code}")
                return None
            return response.text
        except httpx.HTTPError as e:
            logger.warning(f"{self.source.value} fetch error: {e}")
            return None

    @abstractmethod
    async def fetch(self, since: Optional[datetime] = None) -> List[ExternalSignal]:
        """
        Fetch signals published or modified after since.

        Args:
            since: Naive UTC datetime, or None for the feed's latest items
        """
        ...

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
