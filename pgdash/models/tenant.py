"""
Tenant (client) model.

Each Tenant is an isolated customer namespace owning users, notices and
access records. Dependents reference the tenant without ON DELETE CASCADE;
removal goes through the tenant cascade deleter in a fixed order.
"""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from pgdash.database import Base
from pgdash.utils.clock import utcnow


class TenantStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)  # URL-safe, e.g. "acme"
    plan = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=TenantStatus.active.value)
    drive_link = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_tenant_status", "status"),)


class Notice(Base):
    __tablename__ = "notices"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    body = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class AccessRecord(Base):
    """Credentials/links a tenant shares with the agency (the "accesses" collection)."""

    __tablename__ = "accesses"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)
    platform = Column(String(100), nullable=False)
    login = Column(String(255), nullable=True)
    url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
