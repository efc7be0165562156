# insegnami/models/tenant_specific/notice.py
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base
from ..shared.user import Role


class NoticeType(str, enum.Enum):
    ANNOUNCEMENT = "ANNOUNCEMENT"
    EVENT = "EVENT"
    REMINDER = "REMINDER"
    URGENT = "URGENT"


class Notice(Base):
    __tablename__ = "notices"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=True)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(Enum(NoticeType, name="notice_type"), default=NoticeType.ANNOUNCEMENT, nullable=False)
    is_public = Column(Boolean, default=True, nullable=False)
    publish_at = Column(DateTime, nullable=False, index=True)
    expires_at = Column(DateTime)
    # Only ADMIN/SUPERADMIN may set these
    is_pinned = Column(Boolean, default=False, nullable=False)
    is_urgent = Column(Boolean, default=False, nullable=False)

    # Relationships
    audiences = relationship(
        "NoticeAudience",
        back_populates="notice",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def target_roles(self):
        return sorted(audience.role.value for audience in self.audiences)


class NoticeAudience(Base):
    """One row per role a notice is addressed to."""
    __tablename__ = "notice_audiences"

    notice_id = Column(Uuid, ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(Role, name="role"), nullable=False)

    __table_args__ = (
        UniqueConstraint("notice_id", "role", name="uq_notice_audience_role"),
    )

    notice = relationship("Notice", back_populates="audiences")
