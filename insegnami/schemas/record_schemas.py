# insegnami/schemas/record_schemas.py
"""Pydantic schemas for attendance and payment records."""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from pydantic import Field, field_validator, model_validator

from .base import RequestSchema
from ..models.tenant_specific.attendance import AttendanceStatus
from ..models.tenant_specific.payment import PaymentMethod, PaymentStatus


class AttendanceRecord(RequestSchema):
    lesson_id: UUID
    student_id: UUID
    status: AttendanceStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class BulkAttendanceEntry(RequestSchema):
    student_id: UUID
    status: AttendanceStatus
    notes: Optional[str] = Field(default=None, max_length=1000)


class BulkAttendanceRequest(RequestSchema):
    lesson_id: UUID
    records: List[BulkAttendanceEntry] = Field(..., min_length=1, max_length=500)

    @model_validator(mode='after')
    def validate_unique_students(self):
        student_ids = [r.student_id for r in self.records]
        if len(student_ids) != len(set(student_ids)):
            raise ValueError('Each student may appear only once per lesson')
        return self


class PaymentCreate(RequestSchema):
    student_id: UUID
    class_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    due_date: datetime
    description: Optional[str] = Field(default=None, max_length=500)
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class PaymentUpdate(RequestSchema):
    not_nullable = ("amount", "payment_method", "due_date")

    class_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    payment_method: Optional[PaymentMethod] = None
    due_date: Optional[datetime] = None
    description: Optional[str] = Field(default=None, max_length=500)
    reference: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class PaymentStatusUpdate(RequestSchema):
    status: PaymentStatus
    paid_date: Optional[datetime] = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v == PaymentStatus.PENDING:
            raise ValueError('Payments cannot be moved back to PENDING')
        return v
