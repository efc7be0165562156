# insegnami/models/tenant_specific/attendance.py
import enum
from sqlalchemy import Column, ForeignKey, Text, Enum, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class Attendance(Base):
    __tablename__ = "attendances"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    lesson_id = Column(Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("students.id"), nullable=False, index=True)
    recorded_by = Column(Uuid, ForeignKey("users.id"), nullable=True)

    status = Column(Enum(AttendanceStatus, name="attendance_status"), nullable=False, index=True)
    notes = Column(Text)

    __table_args__ = (
        UniqueConstraint("lesson_id", "student_id", name="uq_attendance_lesson_student"),
    )

    # Relationships
    lesson = relationship("Lesson", back_populates="attendances")
