"""
Factory functions for creating test model instances.
"""

import secrets
from typing import Optional

from sqlalchemy.orm import Session

from storesync.models import Tenant


def create_tenant(
    db: Session,
    email: str = "owner@example.com",
    shop_domain: str = "example.myshopify.com",
    access_token: str = "shpat_test",
    api_key: Optional[str] = None,
) -> Tenant:
    """Create and persist a tenant."""
    tenant = Tenant(
        email=email,
        shop_domain=shop_domain,
        access_token=access_token,
        api_key=api_key or secrets.token_hex(32),
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant
