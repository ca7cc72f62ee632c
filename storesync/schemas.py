"""
Pydantic schemas for the API — strict validation.

- All string inputs have explicit max_length.
- Request body models use extra="forbid" to reject unexpected fields.
"""
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator

MAX_LEN_EMAIL = 320
MAX_LEN_DOMAIN = 255
MAX_LEN_ACCESS_TOKEN = 255

# mystore.myshopify.com or a custom domain; no scheme, path or port
DOMAIN_RE = re.compile(r"^(?=.{1,255}$)([a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


class TenantCreate(BaseModel):
    """Onboarding request; the storefront must answer before a tenant is created."""
    model_config = ConfigDict(extra="forbid")
    email: str = Field(..., min_length=3, max_length=MAX_LEN_EMAIL, pattern=r"^[^@\s]+@[^@\s]+$")
    shop_domain: str = Field(..., min_length=1, max_length=MAX_LEN_DOMAIN)
    access_token: str = Field(..., min_length=1, max_length=MAX_LEN_ACCESS_TOKEN)

    @field_validator("shop_domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        v = v.strip().lower().removeprefix("https://").removeprefix("http://").rstrip("/")
        if not DOMAIN_RE.match(v):
            raise ValueError("shop_domain must be a bare host name, e.g. mystore.myshopify.com")
        return v


class TenantOut(BaseModel):
    """Tenant response — never includes access_token or api_key."""
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    shop_domain: str
    created_at: Optional[datetime] = None


class TenantCreateResponse(TenantOut):
    """Returned once on tenant create; only response that includes api_key."""
    api_key: str  # Shown only once; client must store it securely


class KindCounts(BaseModel):
    observed: int
    upserted: int
    failed: int
    fetch_error: Optional[str] = None


class SyncResult(BaseModel):
    ok: bool
    state: str
    counts: dict[str, KindCounts]


class SyncErrorBody(BaseModel):
    error: str  # connection_failed, sync_failed, sync_in_progress, tenant_not_found
    detail: str


class SyncRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    trigger: str
    status: str
    error_type: Optional[str] = None
    error_detail: Optional[str] = None
    counts: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    finished_at: Optional[datetime] = None
