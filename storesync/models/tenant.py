"""Tenant (connected storefront) model."""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from storesync.database import Base


class Tenant(Base):
    """One isolated account, bound to exactly one Shopify storefront."""

    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(320), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Storefront connection; fixed once onboarded
    shop_domain = Column(String(255), nullable=False)
    access_token = Column(String(255), nullable=False)

    # API authentication
    api_key = Column(String(64), unique=True, index=True)

    customers = relationship("Customer", back_populates="tenant")
    orders = relationship("Order", back_populates="tenant")
    products = relationship("Product", back_populates="tenant")
    sync_runs = relationship("SyncRun", back_populates="tenant")
