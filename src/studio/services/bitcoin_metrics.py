"""
Bitcoin Metrics

Live network and market figures for the dashboard header, from
mempool.space and CoinGecko. Results are cached for CACHE_TTL; when every
source fails the last good result is served marked stale.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx

from ..feeds.base_fetcher import USER_AGENT

logger = logging.getLogger("studio.services.metrics")

MEMPOOL_API = "https://mempool.space/api"
COINGECKO_PRICE_URL = (
    "https://api.coingecko.com/api/v3/simple/price"
    "?ids=bitcoin&vs_currencies=usd&include_24hr_change=true"
)

CACHE_TTL = timedelta(minutes=2)
FETCH_TIMEOUT = 10.0
FETCH_ATTEMPTS = 2
RETRY_DELAY = 0.5


class MetricsUnavailable(RuntimeError):
    """No source answered and nothing is cached"""


def _round2(value) -> Optional[float]:
    return round(value, 2) if value is not None else None


def build_metrics(mempool, blocks, hashrate, price, fees) -> dict:
    """Combine raw source payloads; any of them may be None"""
    latest_block = blocks[0] if blocks else {}
    hashrate = hashrate or {}
    bitcoin = (price or {}).get("bitcoin") or {}
    mempool = mempool or {}

    current_hashrate = hashrate.get("currentHashrate")
    return {
        "price": bitcoin.get("usd"),
        "priceChange24h": _round2(bitcoin.get("usd_24h_change")),
        "hashrate": round(current_hashrate / 1e18, 2) if current_hashrate else None,
        "difficulty": hashrate.get("currentDifficulty") or latest_block.get("difficulty"),
        "blockHeight": latest_block.get("height"),
        "mempoolSize": mempool.get("count"),
        "mempoolVSize": round(mempool["vsize"] / 1_000_000, 2) if mempool.get("vsize") else None,
        "medianFee": (fees or {}).get("halfHourFee"),
        "isStale": False,
        "lastUpdated": datetime.utcnow().isoformat() + "Z",
    }


class BitcoinMetricsService:
    """Cached fetcher for the network metrics panel"""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client
        self._cached: Optional[dict] = None
        self._expires_at: Optional[datetime] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=FETCH_TIMEOUT, headers={"User-Agent": USER_AGENT})
        return self._client

    async def _fetch_json(self, url: str):
        """GET url as JSON, retried once on transport errors; None on failure"""
        for attempt in range(FETCH_ATTEMPTS):
            try:
                response = await self._get_client().get(url)
                if response.status_code != 200:
                    logger.warning(f"Metrics fetch failed: HTTP {response.status_code} from {url}")
                    return None
                return response.json()
            except (httpx.HTTPError, ValueError) as e:
                if attempt == FETCH_ATTEMPTS - 1:
                    logger.warning(f"Metrics fetch error from {url}: {e}")
                    return None
                await asyncio.sleep(RETRY_DELAY)
        return None

    async def _fetch_all(self) -> Optional[dict]:
        payloads = await asyncio.gather(
            self._fetch_json(f"{MEMPOOL_API}/mempool"),
            self._fetch_json(f"{MEMPOOL_API}/v1/blocks"),
            self._fetch_json(f"{MEMPOOL_API}/v1/mining/hashrate/3d"),
            self._fetch_json(COINGECKO_PRICE_URL),
            self._fetch_json(f"{MEMPOOL_API}/v1/fees/recommended"),
        )
        if all(p is None for p in payloads):
            return None
        return build_metrics(*payloads)

    async def get_metrics(self, now: Optional[datetime] = None) -> dict:
        """
        Current metrics.

        Raises:
            MetricsUnavailable: Every source failed and there is no cached copy
        """
        now = now or datetime.utcnow()
        if self._cached and self._expires_at and now < self._expires_at:
            return self._cached

        metrics = await self._fetch_all()
        if metrics is None:
            if self._cached:
                return {**self._cached, "isStale": True}
            raise MetricsUnavailable("Failed to fetch Bitcoin metrics")

        self._cached = metrics
        self._expires_at = now + CACHE_TTL
        return metrics

    async def close(self):
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
