# insegnami/models/shared/user.py
"""Identity, tenant membership and one-time tokens."""
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Enum, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship, validates
from ..base import Base


class Role(str, enum.Enum):
    SUPERADMIN = "SUPERADMIN"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


class UserStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"


class TokenPurpose(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


class User(Base):
    __tablename__ = "users"

    email = Column(String(254), nullable=False, unique=True, index=True)
    # Nullable: accounts may be provisioned before a password is set
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20))
    status = Column(Enum(UserStatus, name="user_status"), default=UserStatus.PENDING, nullable=False, index=True)
    email_verified_at = Column(DateTime)

    memberships = relationship("TenantMembership", back_populates="user", cascade="all, delete-orphan")

    @validates('email')
    def validate_email(self, key, value):
        return value.strip().lower() if value else value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class TenantMembership(Base):
    __tablename__ = "tenant_memberships"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    tenant_id = Column(Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(Role, name="role"), nullable=False)
    # Fine-grained overrides: {"allow": [...], "deny": [...]} of action names
    permissions = Column(JSON, default=dict, nullable=False)

    user = relationship("User", back_populates="memberships")
    tenant = relationship("Tenant", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_membership_user_tenant"),
        Index("idx_membership_tenant_role", "tenant_id", "role"),
    )


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    identifier = Column(String(254), nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True)
    purpose = Column(Enum(TokenPurpose, name="token_purpose"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
