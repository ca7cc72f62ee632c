"""Sync run history."""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Text
from sqlalchemy.orm import relationship

from storesync.database import Base


class SyncRun(Base):
    """One orchestration attempt for a tenant (manual or scheduled)."""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    trigger = Column(String(20), nullable=False)  # manual, scheduled
    status = Column(String(20), nullable=False)  # succeeded, failed, rejected
    error_type = Column(String(50))  # connection_failed, tenant_not_found, sync_in_progress, sync_failed
    error_detail = Column(Text)
    counts_json = Column(Text)  # JSON: {kind: {observed, upserted, failed}}

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True))

    tenant = relationship("Tenant", back_populates="sync_runs")
