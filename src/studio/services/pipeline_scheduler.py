"""
Pipeline Scheduler

Background asyncio task that runs the monitoring jobs on cron schedules:
the threat scan, the re-evaluation queue and (when a risk service is
given) the daily risk snapshot. The cron HTTP endpoints call the same
run_* methods.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional, TYPE_CHECKING

from croniter import croniter

if TYPE_CHECKING:
    from .reeval import ReEvalService
    from .risk_service import RiskService
    from .signal_ingestion import SignalIngestionService

logger = logging.getLogger("studio.services.pipeline")

REEVAL_RUN = "reeval"
SNAPSHOT_RUN = "daily_snapshot"


def next_run(cron_expression: str, after: Optional[datetime] = None) -> datetime:
    """Next time a cron expression fires (UTC)"""
    base = after or datetime.now(timezone.utc)
    return croniter(cron_expression, base).get_next(datetime)


class PipelineScheduler:
    """
    Cron-driven runner for the monitoring pipeline.

    Every poll_interval seconds, jobs whose next_run has passed are run
    and rescheduled from their cron expression.
    """

    def __init__(
        self,
        ingestion: SignalIngestionService,
        reeval: ReEvalService,
        monitoring_storage,
        threat_scan_cron: str = "0 */4 * * *",
        reeval_cron: str = "30 * * * *",
        poll_interval: int = 60,
        enabled: bool = False,
        risk_service: Optional[RiskService] = None,
        snapshot_cron: Optional[str] = None,
    ):
        for expression in (threat_scan_cron, reeval_cron, snapshot_cron):
            if expression is None:
                continue
            if not croniter.is_valid(expression):
                raise ValueError(f"Invalid cron expression: {expression}")

        self.ingestion = ingestion
        self.reeval = reeval
        self.monitoring_storage = monitoring_storage
        self.risk_service = risk_service
        self.poll_interval = poll_interval
        self.enabled = enabled
        self.schedules: Dict[str, str] = {
            "threat_scan": threat_scan_cron,
            REEVAL_RUN: reeval_cron,
        }
        if risk_service is not None and snapshot_cron:
            self.schedules[SNAPSHOT_RUN] = snapshot_cron
        self.next_runs: Dict[str, datetime] = {}
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def run_threat_scan(self) -> dict:
        return await self.ingestion.scan_threats()

    async def run_process_queue(self, max_items: Optional[int] = None) -> dict:
        """Process the re-evaluation queue, recorded as a monitoring run"""
        run = await self.monitoring_storage.start(REEVAL_RUN)
        try:
            result = await self.reeval.process_queue(max_items)
        except Exception as e:
            logger.error(f"Queue processing failed: {e}")
            await self.monitoring_storage.fail(run.id, str(e))
            raise
        await self.monitoring_storage.complete(run.id, {k: v for k, v in result.items() if k != "results"})
        return result

    async def run_daily_snapshot(self) -> dict:
        """Store today's risk snapshot, recorded as a monitoring run"""
        if self.risk_service is None:
            raise RuntimeError("Risk service is not configured")
        run = await self.monitoring_storage.start(SNAPSHOT_RUN)
        try:
            result = await self.risk_service.snapshot_daily()
        except Exception as e:
            logger.error(f"Daily snapshot failed: {e}")
            await self.monitoring_storage.fail(run.id, str(e))
            raise
        await self.monitoring_storage.complete(
            run.id, {"date": result["date"], "weeklyPosted": result["weeklyPosted"]}
        )
        return result

    async def start(self):
        """Start the scheduler background task"""
        if not self.enabled:
            logger.info("Pipeline scheduler is disabled (PIPELINE_SCHEDULER_ENABLED=false)")
            return

        if self._running:
            logger.warning("Pipeline scheduler is already running")
            return

        now = datetime.now(timezone.utc)
        self.next_runs = {name: next_run(expr, now) for name, expr in self.schedules.items()}
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Pipeline scheduler started (poll_interval={self.poll_interval}s)")

    async def stop(self):
        """Stop the scheduler background task"""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Pipeline scheduler stopped")

    async def _poll_loop(self):
        while self._running:
            try:
                await self.run_due_jobs()
            except Exception as e:
                logger.error(f"Pipeline poll error: {e}")

            try:
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                break

    async def run_due_jobs(self, now: Optional[datetime] = None) -> list:
        """Run every job whose next run time has passed; returns the names run"""
        now = now or datetime.now(timezone.utc)
        ran = []
        for name, expression in self.schedules.items():
            due = self.next_runs.get(name)
            if due is None or due > now:
                continue
            self.next_runs[name] = next_run(expression, now)
            try:
                if name == REEVAL_RUN:
                    await self.run_process_queue()
                elif name == SNAPSHOT_RUN:
                    await self.run_daily_snapshot()
                else:
                    await self.run_threat_scan()
                ran.append(name)
            except Exception as e:
                logger.error(f"Pipeline job {name} failed: {e}")
        return ran

    @property
    def is_running(self) -> bool:
        return self._running
