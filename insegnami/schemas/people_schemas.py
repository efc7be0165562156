# insegnami/schemas/people_schemas.py
"""Pydantic schemas for Student and Teacher records."""
from datetime import datetime
from typing import Annotated, List, Optional
from uuid import UUID
from pydantic import AfterValidator, EmailStr, Field

from .base import RequestSchema
from ..models.tenant_specific.student import StudentStatus
from ..models.tenant_specific.teacher import TeacherStatus


def _validate_phone(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    cleaned = ''.join(c for c in v if c.isdigit())
    if len(cleaned) < 6:
        raise ValueError('Phone number must contain at least 6 digits')
    return v


Phone = Annotated[Optional[str], Field(max_length=20), AfterValidator(_validate_phone)]


class StudentCreate(RequestSchema):
    student_code: Optional[str] = Field(default=None, max_length=20, description="Generated when omitted")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Phone = None
    date_of_birth: Optional[datetime] = None
    address: Optional[str] = Field(default=None, max_length=500)
    parent_name: Optional[str] = Field(default=None, max_length=200)
    parent_email: Optional[EmailStr] = None
    parent_phone: Phone = None
    emergency_contact: Optional[str] = Field(default=None, max_length=200)
    medical_notes: Optional[str] = None
    enrollment_date: Optional[datetime] = None
    user_id: Optional[UUID] = None
    parent_user_id: Optional[UUID] = None


class StudentUpdate(RequestSchema):
    """All fields optional; ``status`` moves through the lifecycle table."""
    not_nullable = ("first_name", "last_name", "status")

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Phone = None
    date_of_birth: Optional[datetime] = None
    address: Optional[str] = Field(default=None, max_length=500)
    parent_name: Optional[str] = Field(default=None, max_length=200)
    parent_email: Optional[EmailStr] = None
    parent_phone: Phone = None
    emergency_contact: Optional[str] = Field(default=None, max_length=200)
    medical_notes: Optional[str] = None
    user_id: Optional[UUID] = None
    parent_user_id: Optional[UUID] = None
    status: Optional[StudentStatus] = None


class TeacherCreate(RequestSchema):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: Phone = None
    specialization: Optional[str] = Field(default=None, max_length=200)
    user_id: Optional[UUID] = None


class TeacherUpdate(RequestSchema):
    not_nullable = ("first_name", "last_name", "email", "status")

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Phone = None
    specialization: Optional[str] = Field(default=None, max_length=200)
    user_id: Optional[UUID] = None
    status: Optional[TeacherStatus] = None


class BulkDeleteRequest(RequestSchema):
    ids: List[UUID] = Field(..., min_length=1, max_length=500)
