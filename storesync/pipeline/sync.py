"""Sync one tenant's Shopify data into the local store."""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storesync.connectors import shopify
from storesync.database import SessionLocal
from storesync.errors import SyncInProgress, TenantNotFound
from storesync.models import SyncRun, Tenant
from storesync.pipeline.leases import TenantLeases, get_leases
from storesync.pipeline.reconcile import SYNC_ORDER, ReconcileResult, reconcile_kind

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = "idle"
    CONNECTION_TEST = "connection_test"
    SYNCING = "syncing"
    FAILED = "failed"
    DONE = "done"


# error_type values reported on a failed outcome
CONNECTION_FAILED = "connection_failed"
TENANT_NOT_FOUND = "tenant_not_found"
SYNC_IN_PROGRESS = "sync_in_progress"
SYNC_FAILED = "sync_failed"


@dataclass
class SyncOutcome:
    """Aggregate result of one orchestration; the unit returned to callers and logged by the fleet loop."""

    tenant_id: int
    trigger: str
    state: SyncState = SyncState.IDLE
    error_type: Optional[str] = None
    error_detail: Optional[str] = None
    results: list[ReconcileResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.state == SyncState.DONE

    def counts(self) -> dict[str, dict[str, Any]]:
        return {r.kind: r.as_counts() for r in self.results}

    def fail(self, error_type: str, detail: str) -> "SyncOutcome":
        self.state = SyncState.FAILED
        self.error_type = error_type
        self.error_detail = detail
        return self


def _load_tenant(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).populate_existing().filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise TenantNotFound(tenant_id)
    return tenant


def sync_tenant(
    tenant_id: int,
    db: Session,
    *,
    trigger: str = "manual",
    connector=shopify,
    leases: Optional[TenantLeases] = None,
) -> SyncOutcome:
    """
    Run connection test, then customers, products, orders for one tenant.

    Never raises for connection failures, a missing tenant or a concurrent run;
    those come back as a failed SyncOutcome. The tenant lease is released on
    every exit path.
    """
    leases = leases or get_leases()
    outcome = SyncOutcome(tenant_id=tenant_id, trigger=trigger)
    try:
        with leases.hold(tenant_id):
            _run(tenant_id, db, outcome, connector)
    except SyncInProgress as e:
        logger.warning("Rejected %s sync for tenant %s: already running", trigger, tenant_id)
        outcome.fail(SYNC_IN_PROGRESS, str(e))
    outcome.finished_at = datetime.now(timezone.utc)

    if outcome.ok:
        logger.info("Sync complete for tenant %s: %s", tenant_id, outcome.counts())
    else:
        logger.error("Sync failed for tenant %s (%s): %s", tenant_id, outcome.error_type, outcome.error_detail)

    if outcome.error_type != TENANT_NOT_FOUND:
        _record_run(db, outcome)
    return outcome


def _run(tenant_id: int, db: Session, outcome: SyncOutcome, connector) -> None:
    logger.info("Starting %s sync for tenant %s", outcome.trigger, tenant_id)
    try:
        tenant = _load_tenant(db, tenant_id)
    except TenantNotFound as e:
        outcome.fail(TENANT_NOT_FOUND, str(e))
        return
    except Exception as e:
        db.rollback()
        logger.exception("Loading tenant %s aborted sync", tenant_id)
        outcome.fail(SYNC_FAILED, f"load tenant: {e}")
        return

    outcome.state = SyncState.CONNECTION_TEST
    check = connector.verify_connection(tenant.shop_domain, tenant.access_token)
    if not check.success:
        outcome.fail(CONNECTION_FAILED, check.error or "Connection test failed")
        return

    outcome.state = SyncState.SYNCING
    for collection in SYNC_ORDER:
        try:
            # Re-resolve between steps so a tenant removed mid-sync stops here
            if collection != SYNC_ORDER[0]:
                tenant = _load_tenant(db, tenant_id)
            outcome.results.append(reconcile_kind(db, tenant, collection, connector.fetch_collection))
        except TenantNotFound as e:
            db.rollback()
            outcome.fail(TENANT_NOT_FOUND, str(e))
            return
        except Exception as e:
            db.rollback()
            logger.exception("Reconciling %s aborted sync for tenant %s", collection, tenant_id)
            outcome.fail(SYNC_FAILED, f"{collection}: {e}")
            return

    outcome.state = SyncState.DONE


def _record_run(db: Session, outcome: SyncOutcome) -> None:
    """Persist the attempt for operators; failures here never change the outcome."""
    if outcome.ok:
        status = "succeeded"
    elif outcome.error_type == SYNC_IN_PROGRESS:
        status = "rejected"
    else:
        status = "failed"
    try:
        db.add(SyncRun(
            tenant_id=outcome.tenant_id,
            trigger=outcome.trigger,
            status=status,
            error_type=outcome.error_type,
            error_detail=outcome.error_detail,
            counts_json=json.dumps(outcome.counts()),
            started_at=outcome.started_at,
            finished_at=outcome.finished_at,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Could not record sync run for tenant %s: %s", outcome.tenant_id, e)


def run_tenant_sync(
    tenant_id: int,
    trigger: str = "scheduled",
    session_factory: Callable[[], Session] = SessionLocal,
    **kwargs,
) -> SyncOutcome:
    """Sync a tenant with its own session (used outside a request)."""
    db = session_factory()
    try:
        return sync_tenant(tenant_id, db, trigger=trigger, **kwargs)
    finally:
        db.close()
