# insegnami/models/tenant_specific/lesson.py
import enum
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Enum, Uuid, Index
from sqlalchemy.orm import relationship
from ..base import Base


class LessonStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Lesson(Base):
    __tablename__ = "lessons"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id"), nullable=False, index=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id"), nullable=True, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    room = Column(String(50))
    status = Column(Enum(LessonStatus, name="lesson_status"), default=LessonStatus.SCHEDULED, nullable=False)

    __table_args__ = (
        Index("idx_lesson_tenant_start", "tenant_id", "start_time"),
    )

    # Relationships
    class_ref = relationship("ClassModel", back_populates="lessons")
    attendances = relationship("Attendance", back_populates="lesson", cascade="all, delete-orphan")
