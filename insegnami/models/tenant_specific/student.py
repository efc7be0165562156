# insegnami/models/tenant_specific/student.py
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base


class StudentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    TRANSFERRED = "TRANSFERRED"


class Student(Base):
    __tablename__ = "students"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)         # student's own login
    parent_user_id = Column(Uuid, ForeignKey("users.id"), nullable=True, index=True)  # parent's login

    # Basic Information
    student_code = Column(String(20), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(254), index=True)
    phone = Column(String(20))
    date_of_birth = Column(DateTime)
    address = Column(String(500))

    # Parent / guardian contact
    parent_name = Column(String(200))
    parent_email = Column(String(254))
    parent_phone = Column(String(20))
    emergency_contact = Column(String(200))
    medical_notes = Column(Text)

    status = Column(Enum(StudentStatus, name="student_status"), default=StudentStatus.ACTIVE, nullable=False, index=True)
    enrollment_date = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("tenant_id", "student_code", name="uq_student_tenant_code"),
    )

    # Relationships
    enrollments = relationship("StudentClass", back_populates="student")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
