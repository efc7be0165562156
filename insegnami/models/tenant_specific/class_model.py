# insegnami/models/tenant_specific/class_model.py
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Boolean, Text, Uuid, CheckConstraint
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import relationship
from ..base import Base


class ClassModel(Base):
    __tablename__ = "classes"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    teacher_id = Column(Uuid, ForeignKey("teachers.id"), nullable=True, index=True)

    # Class Information
    name = Column(String(100), nullable=False, index=True)
    code = Column(String(20), nullable=False)
    description = Column(Text)
    max_students = Column(Integer, default=20, nullable=False)
    # Denormalised active enrollment count, rewritten under the class row lock
    current_students = Column(Integer, default=0, nullable=False)
    start_date = Column(DateTime)
    end_date = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_class_tenant_code"),
        CheckConstraint("max_students > 0", name="ck_class_capacity_positive"),
    )

    # Relationships
    teacher = relationship("Teacher", back_populates="classes")
    enrollments = relationship("StudentClass", back_populates="class_ref")
    lessons = relationship("Lesson", back_populates="class_ref")

    @property
    def available_spots(self) -> int:
        return max(self.max_students - (self.current_students or 0), 0)
