# insegnami/models/shared/tenant.py
"""Tenant (School) model definition."""
import re
from sqlalchemy import Column, String, Boolean, UniqueConstraint, Index
from sqlalchemy.orm import relationship, validates
from ..base import Base

class Tenant(Base):
    __tablename__ = "tenants"

    name = Column(String(200), nullable=False, index=True)
    slug = Column(String(200), nullable=False)
    # Activated once its first admin verifies their email
    is_active = Column(Boolean, default=False, nullable=False)

    memberships = relationship("TenantMembership", back_populates="tenant", cascade="all, delete-orphan")

    @validates('slug')
    def validate_slug(self, key, value):
        if not value or not re.match(r'^[a-z0-9]+(-[a-z0-9]+)*$', value):
            raise ValueError("Invalid tenant slug")
        return value

    __table_args__ = (
        UniqueConstraint('slug', name='uq_tenant_slug'),
        Index('idx_tenant_active_name', 'is_active', 'name'),
    )


def slugify(name: str) -> str:
    return re.sub(r'(^-|-$)', '', re.sub(r'[^a-z0-9]+', '-', name.lower()))
