# insegnami/models/tenant_specific/teacher.py
import enum
from sqlalchemy import Column, String, ForeignKey, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base


class TeacherStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class Teacher(Base):
    __tablename__ = "teachers"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)  # login account, if any

    # Basic Information
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    phone = Column(String(20))
    specialization = Column(String(200))
    status = Column(Enum(TeacherStatus, name="teacher_status"), default=TeacherStatus.ACTIVE, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_teacher_tenant_email"),
    )

    # Relationships
    classes = relationship("ClassModel", back_populates="teacher")
