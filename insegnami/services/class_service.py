# insegnami/services/class_service.py
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .base_service import BaseService
from ..core.exceptions import Conflict, NotFound, ValidationFailed
from ..core.security import Claims
from ..core.tenant_scope import scope_query
from ..models.tenant_specific.attendance import Attendance, AttendanceStatus
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.lesson import Lesson, LessonStatus
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.teacher import Teacher
from ..schemas.class_schemas import ClassCreate, ClassUpdate
from ..utils.aggregation import average_lesson_attendance, percentage, summarize_attendance
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class ClassService(BaseService[ClassModel]):
    label = "Class"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(ClassModel, db, claims)

    async def list_classes(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        teacher_id: Optional[UUID] = None,
        is_active: Optional[bool] = None,
    ) -> Dict[str, Any]:
        criteria = []
        if search:
            term = f"%{search.lower()}%"
            criteria.append(or_(
                func.lower(ClassModel.name).like(term),
                func.lower(ClassModel.code).like(term),
            ))
        if teacher_id:
            criteria.append(ClassModel.teacher_id == teacher_id)
        if is_active is not None:
            criteria.append(ClassModel.is_active.is_(is_active))
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[ClassModel.name.asc()],
            options=[selectinload(ClassModel.teacher)],
        )

    async def get_class(self, class_id: UUID) -> ClassModel:
        return await self.get(class_id, options=[selectinload(ClassModel.teacher)])

    async def _check_teacher(self, teacher_id: Optional[UUID]) -> None:
        if teacher_id is None:
            return
        stmt = select(Teacher.id).where(Teacher.id == teacher_id, Teacher.tenant_id == self.tenant_id)
        if (await self.db.execute(stmt)).first() is None:
            raise NotFound("Teacher", teacher_id)

    async def _code_taken(self, code: str, exclude_id: Optional[UUID] = None) -> bool:
        stmt = select(ClassModel.id).where(ClassModel.tenant_id == self.tenant_id, ClassModel.code == code)
        if exclude_id is not None:
            stmt = stmt.where(ClassModel.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def create_class(self, data: ClassCreate) -> ClassModel:
        await self._check_teacher(data.teacher_id)
        if await self._code_taken(data.code):
            raise Conflict(f"Class code {data.code} is already in use")
        class_obj = await self.create({**data.model_dump(), "current_students": 0, "is_active": True})
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} created class {class_obj.id}")
        return await self.get_class(class_obj.id)

    async def update_class(self, class_id: UUID, data: ClassUpdate) -> ClassModel:
        changes = data.model_dump(exclude_unset=True)
        # Lock so a shrinking capacity cannot race an enrollment
        class_obj = await self.get(class_id, for_update="max_students" in changes)
        if "teacher_id" in changes:
            await self._check_teacher(changes["teacher_id"])
        if changes.get("code") and await self._code_taken(changes["code"], exclude_id=class_obj.id):
            raise Conflict(f"Class code {changes['code']} is already in use")
        if changes.get("max_students") is not None:
            active = await self.active_enrollment_count(class_obj.id)
            if changes["max_students"] < active:
                raise ValidationFailed(
                    "max_students cannot be lower than the number of active enrollments",
                    details=[{"field": "max_students", "message": f"{active} students are enrolled"}],
                )
        for key, value in changes.items():
            setattr(class_obj, key, value)
        await self.db.commit()
        return await self.get_class(class_obj.id)

    async def deactivate(self, class_id: UUID) -> ClassModel:
        class_obj = await self.get(class_id)
        class_obj.is_active = False
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deactivated class {class_obj.id}")
        return class_obj

    async def active_enrollment_count(self, class_id: UUID) -> int:
        stmt = select(func.count()).select_from(StudentClass).where(
            StudentClass.class_id == class_id,
            StudentClass.status == EnrollmentStatus.ACTIVE,
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def get_enrolled_students(self, class_id: UUID) -> List[Dict[str, Any]]:
        await self.get(class_id)
        stmt = scope_query(
            select(StudentClass, Student)
            .join(Student, Student.id == StudentClass.student_id)
            .where(StudentClass.class_id == class_id, StudentClass.status == EnrollmentStatus.ACTIVE)
            .order_by(Student.last_name, Student.first_name),
            Student,
            self.claims,
        )
        rows = (await self.db.execute(stmt)).all()
        return [
            {
                "studentId": str(student.id),
                "studentCode": student.student_code,
                "firstName": student.first_name,
                "lastName": student.last_name,
                "email": student.email,
                "enrolledAt": enrollment.enrolled_at.isoformat(),
            }
            for enrollment, student in rows
        ]

    async def get_class_stats(self, class_id: UUID) -> Dict[str, Any]:
        """Enrollment, lesson and attendance figures for one class."""
        class_obj = await self.get(class_id)
        now = utcnow()

        enrollments = (await self.db.execute(
            select(StudentClass).where(StudentClass.class_id == class_obj.id)
        )).scalars().all()
        current = sum(1 for e in enrollments if e.is_active)

        lessons = (await self.db.execute(
            select(Lesson.id, Lesson.start_time, Lesson.status).where(Lesson.class_id == class_obj.id)
        )).all()
        completed = sum(1 for l in lessons if l.status == LessonStatus.COMPLETED)
        upcoming = sum(1 for l in lessons if l.status == LessonStatus.SCHEDULED and l.start_time >= now)

        rows = (await self.db.execute(
            select(Attendance.lesson_id, Attendance.student_id, Attendance.status)
            .join(Lesson, Lesson.id == Attendance.lesson_id)
            .where(Lesson.class_id == class_obj.id)
        )).all()
        status_counts: Dict[AttendanceStatus, int] = defaultdict(int)
        present_by_lesson: Dict[UUID, int] = defaultdict(int)
        per_student: Dict[UUID, Dict[str, int]] = defaultdict(lambda: {"total": 0, "present": 0})
        for row in rows:
            status_counts[row.status] += 1
            per_student[row.student_id]["total"] += 1
            if row.status == AttendanceStatus.PRESENT:
                present_by_lesson[row.lesson_id] += 1
                per_student[row.student_id]["present"] += 1

        held = [l for l in lessons if l.status != LessonStatus.CANCELLED and l.start_time <= now]
        lesson_rates = [
            {"present": present_by_lesson.get(l.id, 0), "enrolled": _enrolled_at(enrollments, l.start_time)}
            for l in held
        ]

        return {
            "classId": str(class_obj.id),
            "name": class_obj.name,
            "enrollment": {
                "currentStudents": current,
                "maxStudents": class_obj.max_students,
                "availableSpots": max(class_obj.max_students - current, 0),
                "enrollmentPercentage": percentage(current, class_obj.max_students),
            },
            "lessons": {
                "totalLessons": len(lessons),
                "completedLessons": completed,
                "upcomingLessons": upcoming,
                "lessonCompletionRate": percentage(completed, len(lessons)),
            },
            "attendance": {
                **summarize_attendance(status_counts),
                "averageAttendanceRate": average_lesson_attendance(lesson_rates),
            },
            "studentAttendance": [
                {
                    "studentId": str(e.student_id),
                    "totalLessons": per_student[e.student_id]["total"],
                    "attendancePercentage": percentage(
                        per_student[e.student_id]["present"], per_student[e.student_id]["total"]
                    ),
                }
                for e in enrollments if e.is_active
            ],
        }

    @staticmethod
    def format(class_obj: ClassModel) -> Dict[str, Any]:
        teacher = class_obj.__dict__.get("teacher")
        return {
            "id": str(class_obj.id),
            "tenantId": str(class_obj.tenant_id),
            "name": class_obj.name,
            "code": class_obj.code,
            "description": class_obj.description,
            "teacherId": str(class_obj.teacher_id) if class_obj.teacher_id else None,
            "teacher": {
                "id": str(teacher.id),
                "firstName": teacher.first_name,
                "lastName": teacher.last_name,
                "email": teacher.email,
            } if teacher is not None else None,
            "maxStudents": class_obj.max_students,
            "currentStudents": class_obj.current_students,
            "availableSpots": class_obj.available_spots,
            "startDate": class_obj.start_date.isoformat() if class_obj.start_date else None,
            "endDate": class_obj.end_date.isoformat() if class_obj.end_date else None,
            "isActive": class_obj.is_active,
            "createdAt": class_obj.created_at.isoformat(),
        }


def _enrolled_at(enrollments: List[StudentClass], moment) -> int:
    """Students whose enrollment covered ``moment``."""
    count = 0
    for e in enrollments:
        if e.enrolled_at > moment:
            continue
        if e.status == EnrollmentStatus.DROPPED and e.dropped_at is not None and e.dropped_at <= moment:
            continue
        count += 1
    return count
