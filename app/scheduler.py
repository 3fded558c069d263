"""Background scheduler for periodic reconciliation"""

import logging
import time
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.services.sync_service import ReconcileResult, SyncService

logger = logging.getLogger(__name__)

JOB_ID = "reconcile_all"


class SyncScheduler:
    """Scheduler for periodic full reconciliation"""

    def __init__(self):
        self.scheduler = BackgroundScheduler()
        self.sync_service: Optional[SyncService] = None

    def start(self, sync_service: SyncService, interval_minutes: int = 0):
        """Start the scheduler; a positive interval also schedules the reconcile job"""
        self.sync_service = sync_service
        self.scheduler.start()
        logger.info("Sync scheduler started")

        if interval_minutes > 0:
            self.schedule(interval_minutes)

    def stop(self):
        """Stop the scheduler"""
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Sync scheduler stopped")

    def schedule(self, interval_minutes: int):
        """Schedule (or reschedule) the reconcile job"""
        existing = self.scheduler.get_job(JOB_ID)
        if existing is not None:
            self.scheduler.remove_job(JOB_ID)

        self.scheduler.add_job(
            func=self._reconcile_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=JOB_ID,
            replace_existing=True,
            max_instances=1,
        )
        logger.info(f"Scheduled reconciliation every {interval_minutes} minutes")

    def run_presync(self, sync_service: SyncService) -> ReconcileResult:
        """Run one blocking reconciliation before the webhook listener starts"""
        logger.info("start presync")
        started = time.monotonic()
        result = sync_service.sync_all()
        logger.info(f"end presync, cost {time.monotonic() - started:.1f}s: {result.as_dict()}")
        return result

    def _reconcile_job(self):
        """Job function for the periodic reconciliation"""
        if self.sync_service is None:
            return
        try:
            logger.info("Running scheduled reconciliation")
            result = self.sync_service.sync_all()
            logger.info(f"Scheduled reconciliation completed: {result.as_dict()}")
        except Exception as e:
            logger.error(f"Scheduled reconciliation failed: {e}")


# Global scheduler instance
scheduler = SyncScheduler()
