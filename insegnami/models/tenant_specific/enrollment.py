# insegnami/models/tenant_specific/enrollment.py
import enum
from sqlalchemy import Column, DateTime, ForeignKey, Enum, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from ..base import Base


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DROPPED = "DROPPED"


class StudentClass(Base):
    __tablename__ = "student_classes"

    # Foreign Keys
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id"), nullable=False, index=True)

    # Enrollment Details
    status = Column(Enum(EnrollmentStatus, name="enrollment_status"), default=EnrollmentStatus.ACTIVE, nullable=False)
    enrolled_at = Column(DateTime, nullable=False)
    dropped_at = Column(DateTime)

    # One row per (student, class); re-enrolling reactivates it
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_student_class"),
        Index("idx_student_class_active", "class_id", "status"),
    )

    # Relationships
    student = relationship("Student", back_populates="enrollments")
    class_ref = relationship("ClassModel", back_populates="enrollments")

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE
