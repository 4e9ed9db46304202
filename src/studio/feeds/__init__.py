"""
Studio Threat Feeds

External sources of Bitcoin threat signals: NVD, bitcoin/bitcoin issues
and Bitcoin Optech.
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from ..models.signal import ExternalSignal
from .base_fetcher import BaseFetcher, extract_bip_references, parse_timestamp
from .nvd import NVDFetcher
from .github import GitHubBitcoinFetcher
from .optech import OptechFetcher, stable_hash

logger = logging.getLogger("studio.feeds")


async def fetch_all(fetchers: Sequence[BaseFetcher], since: Optional[datetime] = None) -> List[ExternalSignal]:
    """Run every fetcher concurrently; a failing source contributes nothing"""
    results = await asyncio.gather(*(f.fetch(since) for f in fetchers), return_exceptions=True)

    signals: List[ExternalSignal] = []
    for fetcher, result in zip(fetchers, results):
        if isinstance(result, Exception):
            logger.warning(f"Feed {fetcher.source.value} failed: {result}")
            continue
        signals.extend(result)
    return signals


__all__ = [
    'BaseFetcher',
    'NVDFetcher',
    'GitHubBitcoinFetcher',
    'OptechFetcher',
    'fetch_all',
    'extract_bip_references',
    'parse_timestamp',
    'stable_hash',
]
