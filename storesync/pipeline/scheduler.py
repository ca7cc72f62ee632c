"""
Fleet sync loop.

Uses APScheduler to run every tenant's sync once shortly after startup and
then on a fixed interval. Tenants are synced one at a time with a pause in
between to stay inside Shopify's rate limits.
"""
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from storesync.config import settings
from storesync.database import SessionLocal
from storesync.models import Tenant
from storesync.pipeline.sync import SyncOutcome, run_tenant_sync

logger = logging.getLogger(__name__)

JOB_ID = "fleet_sync"


class FleetScheduler:
    """Owns the periodic timer; tenant listing and per-tenant sync are injected."""

    def __init__(
        self,
        list_tenant_ids: Callable[[], Iterable[int]],
        sync_one: Callable[[int], SyncOutcome],
        *,
        interval_seconds: int = 3600,
        startup_delay_seconds: int = 10,
        pacing_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.list_tenant_ids = list_tenant_ids
        self.sync_one = sync_one
        self.interval_seconds = interval_seconds
        self.startup_delay_seconds = startup_delay_seconds
        self.pacing_seconds = pacing_seconds
        self._sleep = sleep
        self._scheduler: Optional[BackgroundScheduler] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Start the timer; the first cycle runs after the startup delay."""
        if self.running:
            return
        self._scheduler = BackgroundScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self.run_cycle,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            next_run_time=datetime.now(timezone.utc) + timedelta(seconds=self.startup_delay_seconds),
            id=JOB_ID,
            name="Sync all tenants",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            "Fleet scheduler started: every %ss, first run in %ss",
            self.interval_seconds, self.startup_delay_seconds,
        )

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Fleet scheduler stopped")

    def run_cycle(self) -> list[SyncOutcome]:
        """Sync every tenant known right now; never raises."""
        logger.info("Starting scheduled sync for all tenants")
        try:
            tenant_ids = list(self.list_tenant_ids())
        except Exception:
            logger.exception("Scheduled sync aborted: could not list tenants")
            return []

        outcomes = []
        failed = 0
        for i, tenant_id in enumerate(tenant_ids):
            if i:
                self._sleep(self.pacing_seconds)
            try:
                outcome = self.sync_one(tenant_id)
            except Exception:
                failed += 1
                logger.exception("Scheduled sync crashed for tenant %s", tenant_id)
                continue
            outcomes.append(outcome)
            if not outcome.ok:
                failed += 1
                logger.warning(
                    "Scheduled sync failed for tenant %s (%s): %s",
                    tenant_id, outcome.error_type, outcome.error_detail,
                )

        logger.info("Scheduled sync finished: %d tenants, %d failed", len(tenant_ids), failed)
        return outcomes


def list_tenant_ids() -> list[int]:
    """All tenant ids, read fresh from the store."""
    db = SessionLocal()
    try:
        return [row.id for row in db.query(Tenant.id).order_by(Tenant.id).all()]
    finally:
        db.close()


def build_fleet_scheduler() -> FleetScheduler:
    """Scheduler wired to the database and the configured timings."""
    return FleetScheduler(
        list_tenant_ids,
        lambda tenant_id: run_tenant_sync(tenant_id, trigger="scheduled"),
        interval_seconds=settings.sync_interval_seconds,
        startup_delay_seconds=settings.sync_startup_delay_seconds,
        pacing_seconds=settings.sync_tenant_pacing_seconds,
    )
