# insegnami/services/export_service.py
"""CSV exports built from scoped queries and rendered with pandas."""
import io
import logging
from typing import Any, Dict, Optional, Sequence

import pandas as pd
from fastapi import Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.security import Claims
from ..core.tenant_scope import scope_query
from ..models.tenant_specific.attendance import Attendance
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.lesson import Lesson
from ..models.tenant_specific.payment import Payment
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.teacher import Teacher
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv",)


def export_filename(entity: str) -> str:
    return f"{entity}-export-{utcnow().date().isoformat()}.csv"


def render_csv(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    df = pd.DataFrame(list(rows), columns=list(columns))
    buffer = io.StringIO()
    df.to_csv(buffer, index=False)
    return buffer.getvalue()


def csv_response(entity: str, rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> Response:
    return Response(
        content=render_csv(rows, columns),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(entity)}"'},
    )


def _value(v: Any) -> Any:
    if v is None:
        return ""
    if hasattr(v, "value"):
        return v.value
    if hasattr(v, "isoformat"):
        return v.isoformat()
    return v


class ExportService:
    def __init__(self, db: AsyncSession, claims: Claims):
        self.db = db
        self.claims = claims

    async def export(self, entity: str, format: Optional[str] = "csv") -> Response:
        """Export one entity type; formats other than CSV fall back to CSV."""
        if format and format.lower() not in SUPPORTED_FORMATS:
            logger.info(f"Export format {format} not supported, falling back to csv")
        builder = getattr(self, f"_{entity}_rows")
        columns, rows = await builder()
        logger.info(
            f"Tenant {self.claims.tenant_id}: user {self.claims.user_id} exported {len(rows)} {entity} rows"
        )
        return csv_response(entity, rows, columns)

    async def _fetch(self, stmt, entity):
        return (await self.db.execute(scope_query(stmt, entity, self.claims))).all()

    async def _students_rows(self):
        columns = ["id", "studentCode", "firstName", "lastName", "email", "phone", "dateOfBirth",
                   "parentName", "parentEmail", "parentPhone", "status", "enrollmentDate", "createdAt"]
        rows = await self._fetch(select(Student).order_by(Student.last_name, Student.first_name), Student)
        return columns, [
            {
                "id": str(s.id), "studentCode": s.student_code, "firstName": s.first_name,
                "lastName": s.last_name, "email": _value(s.email), "phone": _value(s.phone),
                "dateOfBirth": _value(s.date_of_birth), "parentName": _value(s.parent_name),
                "parentEmail": _value(s.parent_email), "parentPhone": _value(s.parent_phone),
                "status": _value(s.status), "enrollmentDate": _value(s.enrollment_date),
                "createdAt": _value(s.created_at),
            }
            for (s,) in rows
        ]

    async def _teachers_rows(self):
        columns = ["id", "firstName", "lastName", "email", "phone", "specialization", "status", "createdAt"]
        rows = await self._fetch(select(Teacher).order_by(Teacher.last_name, Teacher.first_name), Teacher)
        return columns, [
            {
                "id": str(t.id), "firstName": t.first_name, "lastName": t.last_name, "email": t.email,
                "phone": _value(t.phone), "specialization": _value(t.specialization),
                "status": _value(t.status), "createdAt": _value(t.created_at),
            }
            for (t,) in rows
        ]

    async def _classes_rows(self):
        columns = ["id", "name", "code", "teacher", "maxStudents", "currentStudents",
                   "startDate", "endDate", "isActive"]
        stmt = (
            select(ClassModel, Teacher.first_name, Teacher.last_name)
            .outerjoin(Teacher, Teacher.id == ClassModel.teacher_id)
            .order_by(ClassModel.name)
        )
        rows = await self._fetch(stmt, ClassModel)
        return columns, [
            {
                "id": str(c.id), "name": c.name, "code": c.code,
                "teacher": f"{first} {last}" if first else "",
                "maxStudents": c.max_students, "currentStudents": c.current_students,
                "startDate": _value(c.start_date), "endDate": _value(c.end_date), "isActive": c.is_active,
            }
            for c, first, last in rows
        ]

    async def _attendance_rows(self):
        columns = ["id", "lessonTitle", "lessonDate", "className", "studentCode", "studentName",
                   "status", "notes", "recordedAt"]
        stmt = (
            select(Attendance, Lesson.title, Lesson.start_time, ClassModel.name,
                   Student.student_code, Student.first_name, Student.last_name)
            .join(Lesson, Lesson.id == Attendance.lesson_id)
            .join(ClassModel, ClassModel.id == Lesson.class_id)
            .join(Student, Student.id == Attendance.student_id)
            .order_by(Lesson.start_time.desc())
        )
        rows = await self._fetch(stmt, Attendance)
        return columns, [
            {
                "id": str(a.id), "lessonTitle": title, "lessonDate": _value(start), "className": class_name,
                "studentCode": code, "studentName": f"{first} {last}", "status": _value(a.status),
                "notes": _value(a.notes), "recordedAt": _value(a.updated_at),
            }
            for a, title, start, class_name, code, first, last in rows
        ]

    async def _payments_rows(self):
        columns = ["id", "studentCode", "studentName", "amount", "paymentMethod", "status",
                   "dueDate", "paidDate", "description", "reference"]
        stmt = (
            select(Payment, Student.student_code, Student.first_name, Student.last_name)
            .join(Student, Student.id == Payment.student_id)
            .order_by(Payment.due_date.desc())
        )
        rows = await self._fetch(stmt, Payment)
        return columns, [
            {
                "id": str(p.id), "studentCode": code, "studentName": f"{first} {last}",
                "amount": float(p.amount), "paymentMethod": _value(p.payment_method),
                "status": _value(p.status), "dueDate": _value(p.due_date), "paidDate": _value(p.paid_date),
                "description": _value(p.description), "reference": _value(p.reference),
            }
            for p, code, first, last in rows
        ]
