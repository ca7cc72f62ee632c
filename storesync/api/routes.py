"""API routes for tenant onboarding, manual sync and sync history."""
import json
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from storesync.api.auth import get_tenant_by_key
from storesync.connectors import shopify
from storesync.database import get_db
from storesync.models import SyncRun, Tenant
from storesync.pipeline import sync as sync_pipeline
from storesync.schemas import (
    SyncErrorBody,
    SyncResult,
    SyncRunOut,
    TenantCreate,
    TenantCreateResponse,
    TenantOut,
)

router = APIRouter()
logger = logging.getLogger(__name__)

TenantIdPath = Path(..., gt=0, description="Tenant ID (positive integer)")

# Failed sync outcome -> HTTP status for the manual trigger
SYNC_ERROR_STATUS = {
    sync_pipeline.CONNECTION_FAILED: 502,
    sync_pipeline.SYNC_IN_PROGRESS: 409,
    sync_pipeline.TENANT_NOT_FOUND: 404,
    sync_pipeline.SYNC_FAILED: 500,
}


@router.post("/tenants", response_model=TenantCreateResponse, status_code=201)
def create_tenant(data: TenantCreate, db: Session = Depends(get_db)):
    """Onboard a storefront. The Shopify connection must succeed before the tenant exists."""
    check = shopify.verify_connection(data.shop_domain, data.access_token)
    if not check.success:
        raise HTTPException(400, f"Failed to connect to Shopify store: {check.error}")

    if db.query(Tenant).filter(Tenant.email == data.email).first():
        raise HTTPException(400, "Tenant already exists")

    api_key = secrets.token_hex(32)
    t = Tenant(
        email=data.email,
        shop_domain=data.shop_domain,
        access_token=data.access_token,
        api_key=api_key,
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    logger.info("Tenant created: id=%s shop=%s", t.id, t.shop_domain)
    # api_key is returned only here; never exposed on GET
    return TenantCreateResponse(
        id=t.id,
        email=t.email,
        shop_domain=t.shop_domain,
        created_at=t.created_at,
        api_key=api_key,
    )


@router.get("/tenants/{tenant_id}", response_model=TenantOut)
def get_tenant(
    tenant_id: int = TenantIdPath,
    tenant: Tenant = Depends(get_tenant_by_key),
):
    if tenant.id != tenant_id:
        raise HTTPException(403, "Forbidden")
    return tenant


@router.post(
    "/tenants/{tenant_id}/sync",
    response_model=SyncResult,
    responses={code: {"model": SyncErrorBody} for code in (404, 409, 500, 502)},
)
def sync(
    tenant_id: int = TenantIdPath,
    tenant: Tenant = Depends(get_tenant_by_key),
    db: Session = Depends(get_db),
):
    """Sync customers, products and orders from Shopify now; returns when done."""
    if tenant.id != tenant_id:
        raise HTTPException(403, "Forbidden")
    outcome = sync_pipeline.sync_tenant(tenant_id, db, trigger="manual")
    if not outcome.ok:
        raise HTTPException(
            SYNC_ERROR_STATUS.get(outcome.error_type, 500),
            detail={"error": outcome.error_type, "detail": outcome.error_detail},
        )
    return SyncResult(ok=True, state=outcome.state.value, counts=outcome.counts())


@router.get("/tenants/{tenant_id}/sync-runs", response_model=list[SyncRunOut])
def list_sync_runs(
    tenant_id: int = TenantIdPath,
    limit: int = Query(default=20, ge=1, le=200),
    tenant: Tenant = Depends(get_tenant_by_key),
    db: Session = Depends(get_db),
):
    """Recent sync attempts for the tenant, newest first."""
    if tenant.id != tenant_id:
        raise HTTPException(403, "Forbidden")
    runs = (
        db.query(SyncRun)
        .filter(SyncRun.tenant_id == tenant_id)
        .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
        .limit(limit)
        .all()
    )
    result = []
    for run in runs:
        out = SyncRunOut.model_validate(run)
        out.counts = json.loads(run.counts_json) if run.counts_json else {}
        result.append(out)
    return result
