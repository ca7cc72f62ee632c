"""Product model."""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storesync.database import Base


class Product(Base):
    """Shopify product; price and stock come from its first variant."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    external_id = Column(String(100), nullable=False, index=True)  # Shopify product id

    title = Column(String(255), nullable=False, default="", index=True)
    vendor = Column(String(255), nullable=False, default="")
    product_type = Column(String(255), nullable=False, default="")
    price = Column(Numeric(12, 2), nullable=False, default=0)
    inventory_quantity = Column(Integer, nullable=False, default=0)

    source_created_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    last_synced_at = Column(DateTime(timezone=True), index=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_id", name="uq_product_tenant_external"),
    )

    tenant = relationship("Tenant", back_populates="products")
