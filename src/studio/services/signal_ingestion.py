"""
Signal Ingestion

Threat scan job: pull external signals, store the new ones and queue
re-evaluation of every BIP a medium-or-worse signal mentions.
"""
import logging
from typing import List, Sequence

from ..feeds import fetch_all
from ..feeds.base_fetcher import BaseFetcher
from ..models.signal import SignalSeverity, ReEvalTrigger
from .reeval import ReEvalService

logger = logging.getLogger("studio.services.signals")

THREAT_SCAN_RUN = "threat_scan"
HIGH_SEVERITY_RANK = SignalSeverity.MEDIUM.rank


def bip_variants(references: Sequence[str]) -> List[str]:
    """Spellings a BIP reference may be stored under: BIP-141 and BIP-0141"""
    variants = []
    for ref in references:
        variants.append(ref)
        digits = "".join(ch for ch in ref if ch.isdigit())
        if digits:
            number = int(digits)
            variants.append(f"BIP-{number}")
            variants.append(f"BIP-{number:04d}")
    return list(dict.fromkeys(variants))


class SignalIngestionService:
    def __init__(
        self,
        fetchers: Sequence[BaseFetcher],
        signal_storage,
        monitoring_storage,
        bip_storage,
        reeval: ReEvalService,
    ):
        self.fetchers = list(fetchers)
        self.signal_storage = signal_storage
        self.monitoring_storage = monitoring_storage
        self.bip_storage = bip_storage
        self.reeval = reeval

    async def scan_threats(self) -> dict:
        """
        Run one threat scan.

        Returns:
            {total_signals, inserted, duplicates, high_severity, queued}
        """
        last_run = await self.monitoring_storage.last_completed(THREAT_SCAN_RUN)
        since = last_run.started_at if last_run else None
        run = await self.monitoring_storage.start(THREAT_SCAN_RUN)

        try:
            signals = await fetch_all(self.fetchers, since)

            inserted = 0
            duplicates = 0
            bip_refs: List[str] = []
            high_severity = 0
            for signal in signals:
                stored = await self.signal_storage.insert(signal)
                if stored is None:
                    duplicates += 1
                    continue
                inserted += 1
                if signal.severity.rank >= HIGH_SEVERITY_RANK:
                    high_severity += 1
                    bip_refs.extend(signal.related_bips)

            queued = 0
            if bip_refs:
                bips = await self.bip_storage.find_by_numbers(bip_variants(bip_refs))
                triggers = [
                    ReEvalTrigger(bip_id=bip.id, reason="new_threat", priority=1)
                    for bip in bips
                ]
                queued = await self.reeval.queue_reevaluations(triggers)

            result = {
                "total_signals": len(signals),
                "inserted": inserted,
                "duplicates": duplicates,
                "high_severity": high_severity,
                "queued": queued,
            }
        except Exception as e:
            logger.error(f"Threat scan failed: {e}")
            await self.monitoring_storage.fail(run.id, str(e))
            raise

        await self.monitoring_storage.complete(run.id, result)
        logger.info(
            f"Threat scan: {result['total_signals']} signals, {inserted} new, "
            f"{duplicates} duplicates, {high_severity} high-severity, {queued} BIPs queued"
        )
        return result
