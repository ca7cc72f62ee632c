"""Error taxonomy for the sync engine.

Per-record errors (mapping, store write) never leave the reconciler.
Per-tenant errors (connection, missing tenant, lease conflict) never leave
the orchestrator; they are reported on the SyncOutcome instead.
"""
from typing import Optional


class SyncError(Exception):
    """Base class for sync engine errors."""


class ShopifyConnectionError(SyncError):
    """Shopify unreachable, credential rejected, domain invalid or call timed out."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class RecordMappingError(SyncError):
    """A single vendor record could not be mapped to local columns."""

    def __init__(self, kind: str, external_id: Optional[str], detail: str):
        super().__init__(f"{kind} {external_id or '<no id>'}: {detail}")
        self.kind = kind
        self.external_id = external_id
        self.detail = detail


class StoreWriteError(SyncError):
    """A single upsert failed (constraint violation, transient store error)."""

    def __init__(self, kind: str, external_id: Optional[str], detail: str):
        super().__init__(f"{kind} {external_id}: {detail}")
        self.kind = kind
        self.external_id = external_id
        self.detail = detail


class TenantNotFound(SyncError):
    def __init__(self, tenant_id: int):
        super().__init__(f"Tenant {tenant_id} not found")
        self.tenant_id = tenant_id


class SyncInProgress(SyncError):
    def __init__(self, tenant_id: int):
        super().__init__(f"Sync already in progress for tenant {tenant_id}")
        self.tenant_id = tenant_id
