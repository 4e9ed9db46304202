"""
Audit Log Buffer

Collects security and compliance events in memory and writes them to
audit_logs in bulk, either when the buffer fills up or on a timer.
Entries that fail to write are put back at the front of the buffer and
retried on the next flush. Not durable: a crash loses what is buffered.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
from uuid import UUID

from ..models.audit import AuditAction, AuditEntry

if TYPE_CHECKING:
    from ..storage.audit_storage import AuditStorage

logger = logging.getLogger("studio.services.audit")


class AuditLogBuffer:
    """
    Buffered writer for audit_logs.

    Flushes when flush_size entries are waiting, every flush_interval
    seconds while started, and once more on stop().
    """

    def __init__(
        self,
        storage: AuditStorage,
        flush_size: int = 100,
        flush_interval: float = 5.0,
    ):
        self.storage = storage
        self.flush_size = flush_size
        self.flush_interval = flush_interval
        self._buffer: List[AuditEntry] = []
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def start(self):
        """Start the periodic flush task"""
        if self._running:
            logger.warning("Audit flusher is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._flush_loop())
        logger.info(f"Audit flusher started (interval={self.flush_interval}s, size={self.flush_size})")

    async def stop(self):
        """Stop the periodic task and write whatever is left"""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        await self.flush()
        logger.info("Audit flusher stopped")

    async def _flush_loop(self):
        while self._running:
            try:
                await asyncio.sleep(self.flush_interval)
            except asyncio.CancelledError:
                break
            await self.flush()

    async def log(self, entry: AuditEntry) -> None:
        """Buffer an entry; flushes immediately once the buffer is full"""
        self._buffer.append(entry)
        if len(self._buffer) >= self.flush_size:
            await self.flush()

    async def flush(self) -> int:
        """
        Write buffered entries.

        Returns:
            Number of entries written (0 when empty or on failure)
        """
        async with self._lock:
            if not self._buffer:
                return 0

            batch, self._buffer = self._buffer, []
            try:
                await self.storage.insert_many(batch)
            except Exception as e:
                # Entries logged during the write stay behind the failed batch
                self._buffer = batch + self._buffer
                logger.error(f"Failed to flush {len(batch)} audit entries: {e}")
                return 0

            logger.debug(f"Flushed {len(batch)} audit entries")
            return len(batch)

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def query(
        self,
        user_id: Optional[UUID] = None,
        action: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[AuditEntry]:
        """Stored entries, newest first"""
        return await self.storage.query(user_id=user_id, action=action, start=start, end=end, limit=limit)

    # ============================================
    # Helpers
    # ============================================

    async def log_auth_event(
        self,
        action: AuditAction,
        user_id: Optional[UUID] = None,
        email: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        success: bool = True,
        error_message: Optional[str] = None,
    ) -> None:
        await self.log(AuditEntry(
            action=action,
            user_id=user_id,
            resource="auth",
            details={"email": email} if email else {},
            ip_address=ip_address,
            user_agent=user_agent,
            success=success,
            error_message=error_message,
        ))

    async def log_data_access(
        self,
        user_id: UUID,
        action: AuditAction,
        resource: str,
        resource_id: Optional[str] = None,
        data_category: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEntry(
            action=action,
            user_id=user_id,
            resource=resource,
            resource_id=resource_id,
            data_category=data_category,
            details=details or {},
        ))

    async def log_ai_interaction(
        self,
        user_id: UUID,
        action: AuditAction,
        executive: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEntry(
            action=action,
            user_id=user_id,
            resource="ai",
            resource_id=executive,
            details=details or {},
        ))

    async def log_security_incident(
        self,
        action: AuditAction,
        ip_address: Optional[str] = None,
        details: Optional[dict] = None,
        user_id: Optional[UUID] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        logger.warning(f"Security event {action.value} from {ip_address}: {details or {}}")
        await self.log(AuditEntry(
            action=action,
            user_id=user_id,
            resource="security",
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
            success=False,
        ))
