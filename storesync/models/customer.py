"""Customer model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storesync.database import Base


class Customer(Base):
    """Shopify customer, unique per (tenant, external_id)."""

    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False, index=True)  # Shopify customer id

    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    email = Column(String(320), nullable=False, default="")
    total_spent = Column(Numeric(12, 2), nullable=False, default=0)
    orders_count = Column(Integer, nullable=False, default=0)

    source_created_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_synced_at = Column(DateTime(timezone=True), index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_customer_tenant_external"),
    )

    tenant = relationship("Tenant", back_populates="customers")
