"""
Bitcoin Optech Fetcher

Security-related items from the Bitcoin Optech RSS feed.
"""
import html
import logging
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

from ..models.signal import ExternalSignal, SignalSeverity, SignalSource
from .base_fetcher import BaseFetcher, extract_bip_references

logger = logging.getLogger("studio.feeds.optech")

FEED_URL = "https://bitcoinops.org/feed.xml"
MAX_ITEMS = 20

SECURITY_KEYWORDS = (
    "vulnerability", "exploit", "attack", "security", "cve",
    "disclosure", "malicious", "bug", "fix", "patch",
)

_TAG_RE = re.compile(r"<[^>]+>")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def stable_hash(text: str) -> str:
    """
    31-bit string hash rendered in base 36.

    Same result as the classic `hash = hash * 31 + charCode` over UTF-16
    code units with 32-bit wraparound, so ids stay stable across runs.
    """
    value = 0
    data = text.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code = data[i] | (data[i + 1] << 8)
        value = ((value << 5) - value + code) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    value = abs(value)

    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def strip_html(text: str) -> str:
    return _TAG_RE.sub("", html.unescape(text or "")).strip()


def _parse_pub_date(value: str) -> Optional[datetime]:
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_security_related(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in SECURITY_KEYWORDS)


class OptechFetcher(BaseFetcher):
    source = SignalSource.BITCOIN_OPTECH

    async def fetch(self, since: Optional[datetime] = None) -> List[ExternalSignal]:
        xml_text = await self.fetch_text(FEED_URL)
        if not xml_text:
            return []

        try:
            root = ET.fromstring(xml_text)
        except ET.ParseError as e:
            logger.warning(f"Optech feed is not valid XML: {e}")
            return []

        signals = []
        for item in root.iter("item"):
            if len(signals) >= MAX_ITEMS:
                break
            title = (item.findtext("title") or "").strip()
            link = (item.findtext("link") or "").strip()
            description = item.findtext("description") or ""
            pub_date = _parse_pub_date(item.findtext("pubDate") or "")

            if not title or not link:
                continue
            if since and pub_date and pub_date < since:
                continue

            full_text = f"{title} {description}"
            if not is_security_related(full_text):
                continue

            signals.append(ExternalSignal(
                source=self.source,
                external_id=f"optech-{stable_hash(link)}",
                source_url=link,
                title=strip_html(title)[:500],
                description=strip_html(description)[:2000],
                severity=SignalSeverity.UNKNOWN,
                published_date=pub_date or datetime.utcnow(),
                related_bips=extract_bip_references(full_text),
            ))

        logger.info(f"Optech returned {len(signals)} signal(s)")
        return signals
