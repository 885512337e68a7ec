"""APScheduler-based audit log retention job."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from mail_dispatcher.exceptions import StoreError

if TYPE_CHECKING:
    from mail_dispatcher.config import Settings
    from mail_dispatcher.storage import AuditLog

logger = structlog.get_logger(__name__)


class RetentionScheduler:
    """Purge old dispatch outcomes once a day."""

    def __init__(self, settings: "Settings", audit_log: "AuditLog"):
        self.settings = settings
        self.audit_log = audit_log
        self.scheduler = AsyncIOScheduler()
        self._shutdown = asyncio.Event()

    async def run(self) -> None:
        """Start scheduler and run until shutdown."""
        if self.settings.log_retention_days == 0:
            logger.info("retention_disabled")
            await self._shutdown.wait()
            return

        logger.info(
            "retention_scheduler_starting",
            retention_days=self.settings.log_retention_days,
            retention_hour=self.settings.retention_hour,
            timezone=self.settings.tz,
        )

        self.scheduler.add_job(
            self.purge_now,
            trigger=CronTrigger(
                hour=self.settings.retention_hour, minute=0, timezone=self.settings.tz
            ),
            id="audit_log_retention",
            name="Audit Log Retention",
            replace_existing=True,
        )

        self.scheduler.start()

        await self._shutdown.wait()

        self.scheduler.shutdown(wait=True)
        logger.info("retention_scheduler_stopped")

    async def purge_now(self, days: int | None = None) -> int:
        """Delete outcomes older than ``days`` (default: the configured retention).

        Returns:
            Number of outcomes deleted, 0 if the purge failed.
        """
        days = self.settings.log_retention_days if days is None else days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        try:
            deleted = await self.audit_log.purge_outcomes(cutoff)
        except StoreError as e:
            logger.error("retention_purge_failed", error=str(e))
            return 0
        logger.info("retention_purge_done", deleted=deleted, days=days)
        return deleted

    def request_shutdown(self) -> None:
        """Signal graceful shutdown."""
        logger.info("retention_shutdown_requested")
        self._shutdown.set()
