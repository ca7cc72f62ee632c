"""Order model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storesync.database import Base


class Order(Base):
    """Shopify order, unique per (tenant, external_id)."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False, index=True)  # Shopify order id

    # Shopify customer id as sent by the vendor; not a foreign key
    customer_external_id = Column(String(100), index=True)
    total_price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(10), nullable=False, default="USD")
    order_status = Column(String(50), nullable=False, default="pending")

    source_created_at = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_synced_at = Column(DateTime(timezone=True), index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_order_tenant_external"),
    )

    tenant = relationship("Tenant", back_populates="orders")
