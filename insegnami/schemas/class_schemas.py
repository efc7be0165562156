# insegnami/schemas/class_schemas.py
"""Pydantic schemas for classes, enrollment and lessons."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import Field, model_validator

from .base import RequestSchema
from ..models.tenant_specific.lesson import LessonStatus


class ClassCreate(RequestSchema):
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=20)
    description: Optional[str] = None
    teacher_id: Optional[UUID] = None
    max_students: int = Field(20, gt=0, le=1000, description="Maximum capacity")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date must not be before start_date')
        return self


class ClassUpdate(RequestSchema):
    not_nullable = ("name", "code", "max_students", "is_active")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, min_length=1, max_length=20)
    description: Optional[str] = None
    teacher_id: Optional[UUID] = None
    max_students: Optional[int] = Field(default=None, gt=0, le=1000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


class EnrollRequest(RequestSchema):
    student_ids: List[UUID] = Field(..., min_length=1, max_length=500)


class LessonCreate(RequestSchema):
    class_id: UUID
    teacher_id: Optional[UUID] = Field(default=None, description="Defaults to the class teacher")
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    room: Optional[str] = Field(default=None, max_length=50)

    @model_validator(mode='after')
    def validate_times(self):
        if self.end_time <= self.start_time:
            raise ValueError('end_time must be after start_time')
        return self


class LessonUpdate(RequestSchema):
    not_nullable = ("title", "start_time", "end_time")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    room: Optional[str] = Field(default=None, max_length=50)
    teacher_id: Optional[UUID] = None


class LessonStatusUpdate(RequestSchema):
    status: LessonStatus
