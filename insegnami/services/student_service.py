# insegnami/services/student_service.py
import logging
import secrets
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import Conflict
from ..core.security import Claims
from ..models.lifecycle import ensure_transition
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.student import Student, StudentStatus
from ..schemas.people_schemas import StudentCreate, StudentUpdate
from ..utils.timeutils import month_start, utcnow

logger = logging.getLogger(__name__)


class StudentService(BaseService[Student]):
    label = "Student"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Student, db, claims)

    async def list_students(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        class_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        criteria = []
        if search:
            term = f"%{search.lower()}%"
            criteria.append(or_(
                func.lower(Student.first_name).like(term),
                func.lower(Student.last_name).like(term),
                func.lower(Student.email).like(term),
                func.lower(Student.student_code).like(term),
            ))
        if status:
            criteria.append(Student.status == status)
        if class_id:
            criteria.append(Student.id.in_(
                select(StudentClass.student_id).where(
                    StudentClass.class_id == class_id,
                    StudentClass.status == EnrollmentStatus.ACTIVE,
                )
            ))
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[Student.last_name.asc(), Student.first_name.asc()],
        )

    async def _code_taken(self, code: str) -> bool:
        stmt = select(Student.id).where(Student.tenant_id == self.tenant_id, Student.student_code == code)
        return (await self.db.execute(stmt)).first() is not None

    async def create_student(self, data: StudentCreate) -> Student:
        payload = data.model_dump(exclude_none=True)
        code = payload.pop("student_code", None)
        if code:
            if await self._code_taken(code):
                raise Conflict(f"Student code {code} is already in use")
        else:
            code = f"STU{secrets.token_hex(4).upper()}"
            while await self._code_taken(code):
                code = f"STU{secrets.token_hex(4).upper()}"

        payload.setdefault("enrollment_date", utcnow())
        student = await self.create({**payload, "student_code": code, "status": StudentStatus.ACTIVE})
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} created student {student.id}")
        return student

    async def update_student(self, student_id: UUID, data: StudentUpdate) -> Student:
        student = await self.get(student_id)
        changes = data.model_dump(exclude_unset=True)
        new_status = changes.pop("status", None)
        if new_status is not None and new_status != student.status:
            ensure_transition("Student", student.status, new_status)
            student.status = new_status
        for key, value in changes.items():
            setattr(student, key, value)
        await self.db.commit()
        await self.db.refresh(student)
        return student

    async def deactivate(self, student_id: UUID) -> Student:
        student = await self.get(student_id)
        ensure_transition("Student", student.status, StudentStatus.INACTIVE)
        student.status = StudentStatus.INACTIVE
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deactivated student {student.id}")
        return student

    async def bulk_deactivate(self, ids: List[UUID]) -> int:
        """Move every ACTIVE student in ``ids`` to INACTIVE in one statement."""
        stmt = self.scoped(
            update(Student)
            .where(Student.id.in_(ids), Student.status == StudentStatus.ACTIVE)
            .values(status=StudentStatus.INACTIVE, updated_at=utcnow())
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        logger.info(
            f"Tenant {self.tenant_id}: user {self.claims.user_id} bulk-deactivated {result.rowcount} students"
        )
        return result.rowcount

    async def get_stats(self) -> Dict[str, Any]:
        now = utcnow()
        by_status = dict((await self.db.execute(
            self.scoped(select(Student.status, func.count()).select_from(Student)).group_by(Student.status)
        )).all())
        total = sum(by_status.values())

        new_this_month = await self.count(Student.enrollment_date >= month_start(now))

        birth_dates = (await self.db.execute(
            self.scoped(select(Student.date_of_birth)).where(Student.date_of_birth.is_not(None))
        )).scalars().all()
        average_age = round(sum(now.year - d.year for d in birth_dates) / len(birth_dates)) if birth_dates else 0

        enrollments = (await self.db.execute(
            select(func.count()).select_from(StudentClass).where(
                StudentClass.status == EnrollmentStatus.ACTIVE,
                StudentClass.student_id.in_(self.scoped(select(Student.id))),
            )
        )).scalar() or 0

        return {
            "totalStudents": total,
            "activeStudents": by_status.get(StudentStatus.ACTIVE, 0),
            "inactiveStudents": by_status.get(StudentStatus.INACTIVE, 0),
            "graduatedStudents": by_status.get(StudentStatus.GRADUATED, 0),
            "transferredStudents": by_status.get(StudentStatus.TRANSFERRED, 0),
            "newStudentsThisMonth": new_this_month,
            "averageAge": average_age,
            "activeEnrollments": enrollments,
        }

    @staticmethod
    def format(student: Student, detailed: bool = False) -> Dict[str, Any]:
        data = {
            "id": str(student.id),
            "tenantId": str(student.tenant_id),
            "studentCode": student.student_code,
            "firstName": student.first_name,
            "lastName": student.last_name,
            "email": student.email,
            "phone": student.phone,
            "status": student.status.value,
            "enrollmentDate": student.enrollment_date.isoformat() if student.enrollment_date else None,
            "createdAt": student.created_at.isoformat(),
        }
        if detailed:
            data.update({
                "dateOfBirth": student.date_of_birth.isoformat() if student.date_of_birth else None,
                "address": student.address,
                "parentName": student.parent_name,
                "parentEmail": student.parent_email,
                "parentPhone": student.parent_phone,
                "emergencyContact": student.emergency_contact,
                "medicalNotes": student.medical_notes,
                "userId": str(student.user_id) if student.user_id else None,
                "parentUserId": str(student.parent_user_id) if student.parent_user_id else None,
                "updatedAt": student.updated_at.isoformat(),
            })
        return data
