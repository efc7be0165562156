# insegnami/services/dashboard_service.py
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.cache import CacheManager
from ..core.config import settings
from ..core.exceptions import NotFound
from ..core.security import Claims
from ..core.tenant_scope import scope_query
from ..models.tenant_specific.attendance import Attendance, AttendanceStatus
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.lesson import Lesson, LessonStatus
from ..models.tenant_specific.notice import Notice
from ..models.tenant_specific.payment import Payment, PaymentStatus
from ..models.tenant_specific.student import Student, StudentStatus
from ..models.tenant_specific.teacher import Teacher, TeacherStatus
from ..utils.aggregation import percentage
from ..utils.timeutils import utcnow
from .payment_service import PaymentService

logger = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=7)
RECENT_WINDOW = timedelta(days=30)


class DashboardService:
    def __init__(self, db: AsyncSession, claims: Claims, cache: Optional[CacheManager] = None):
        self.db = db
        self.claims = claims
        self.cache = cache

    async def _scalar(self, stmt, entity) -> Any:
        return (await self.db.execute(scope_query(stmt, entity, self.claims))).scalar()

    def admin_cache_key(self) -> str:
        return self.cache.make_key("dashboard", "admin", self.claims.tenant_id)

    async def get_admin_stats(self) -> Dict[str, Any]:
        """Tenant-wide counters, cached per tenant for a short TTL."""
        if self.cache is not None:
            cached = await self.cache.get(self.admin_cache_key())
            if cached is not None:
                return {**cached, "cached": True}

        # Stale PENDING rows must land in the overdue bucket
        await PaymentService(self.db, self.claims).mark_overdue()
        now = utcnow()
        count = func.count()
        stats = {
            "totalStudents": await self._scalar(
                select(count).select_from(Student).where(Student.status == StudentStatus.ACTIVE), Student) or 0,
            "totalTeachers": await self._scalar(
                select(count).select_from(Teacher).where(Teacher.status == TeacherStatus.ACTIVE), Teacher) or 0,
            "totalClasses": await self._scalar(select(count).select_from(ClassModel), ClassModel) or 0,
            "activeClasses": await self._scalar(
                select(count).select_from(ClassModel).where(
                    ClassModel.is_active.is_(True),
                    or_(ClassModel.end_date.is_(None), ClassModel.end_date >= now),
                ),
                ClassModel,
            ) or 0,
            "totalRevenue": float(await self._scalar(
                select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == PaymentStatus.PAID),
                Payment) or 0),
            "pendingPayments": float(await self._scalar(
                select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == PaymentStatus.PENDING),
                Payment) or 0),
            "overduePayments": float(await self._scalar(
                select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == PaymentStatus.OVERDUE),
                Payment) or 0),
            "recentEnrollments": await self._scalar(
                select(count).select_from(StudentClass).where(StudentClass.enrolled_at >= now - RECENT_WINDOW),
                StudentClass,
            ) or 0,
        }

        attended = await self._scalar(
            select(count).select_from(Attendance).where(
                Attendance.status.in_([AttendanceStatus.PRESENT, AttendanceStatus.LATE])
            ),
            Attendance,
        ) or 0
        recorded = await self._scalar(select(count).select_from(Attendance), Attendance) or 0
        stats["attendanceRate"] = percentage(attended, recorded)
        stats["generatedAt"] = now.isoformat()

        if self.cache is not None:
            await self.cache.set(self.admin_cache_key(), stats, expire=settings.dashboard_cache_ttl)
        return {**stats, "cached": False}

    async def _own_students(self) -> List[Student]:
        stmt = scope_query(select(Student).order_by(Student.first_name), Student, self.claims)
        return list((await self.db.execute(stmt)).scalars().all())

    async def _learner_summary(self, student_ids: Sequence[UUID]) -> Dict[str, Any]:
        """Classes, upcoming lessons, attendance and payments for a set of students."""
        now = utcnow()

        classes = (await self.db.execute(
            select(StudentClass.student_id, StudentClass.enrolled_at, ClassModel)
            .join(ClassModel, ClassModel.id == StudentClass.class_id)
            .where(StudentClass.student_id.in_(student_ids), StudentClass.status == EnrollmentStatus.ACTIVE)
            .order_by(ClassModel.name)
        )).all()
        class_ids = list({c.id for _, _, c in classes})

        upcoming = (await self.db.execute(
            select(Lesson, ClassModel.name)
            .join(ClassModel, ClassModel.id == Lesson.class_id)
            .where(
                Lesson.class_id.in_(class_ids),
                Lesson.status == LessonStatus.SCHEDULED,
                Lesson.start_time >= now,
                Lesson.start_time <= now + UPCOMING_WINDOW,
            )
            .order_by(Lesson.start_time)
            .limit(10)
        )).all() if class_ids else []

        attendance = dict((await self.db.execute(
            select(Attendance.status, func.count())
            .where(Attendance.student_id.in_(student_ids), Attendance.created_at >= now - RECENT_WINDOW)
            .group_by(Attendance.status)
        )).all())
        attended = attendance.get(AttendanceStatus.PRESENT, 0) + attendance.get(AttendanceStatus.LATE, 0)
        recorded = sum(attendance.values())

        payments = (await self.db.execute(
            select(Payment).where(Payment.student_id.in_(student_ids)).order_by(Payment.due_date.desc())
        )).scalars().all()
        outstanding = [p for p in payments if p.status in (PaymentStatus.PENDING, PaymentStatus.OVERDUE)]

        return {
            "stats": {
                "activeClasses": len(classes),
                "upcomingLessons": len(upcoming),
                "attendanceRate": percentage(attended, recorded),
                "recordedLessons": recorded,
                "pendingPayments": len(outstanding),
                "pendingAmount": float(sum(p.amount for p in outstanding)),
            },
            "classes": [
                {
                    "studentId": str(student_id),
                    "classId": str(c.id),
                    "name": c.name,
                    "code": c.code,
                    "enrolledAt": enrolled_at.isoformat(),
                }
                for student_id, enrolled_at, c in classes
            ],
            "upcomingLessons": [
                {
                    "id": str(lesson.id),
                    "title": lesson.title,
                    "className": class_name,
                    "startTime": lesson.start_time.isoformat(),
                    "endTime": lesson.end_time.isoformat(),
                    "room": lesson.room,
                }
                for lesson, class_name in upcoming
            ],
            "payments": [
                {
                    "id": str(p.id),
                    "studentId": str(p.student_id),
                    "amount": float(p.amount),
                    "status": p.status.value,
                    "dueDate": p.due_date.isoformat(),
                }
                for p in outstanding
            ],
        }

    async def _recent_notices(self, limit: int = 5) -> List[Dict[str, Any]]:
        stmt = scope_query(
            select(Notice).order_by(Notice.is_pinned.desc(), Notice.publish_at.desc()).limit(limit),
            Notice,
            self.claims,
        )
        return [
            {"id": str(n.id), "title": n.title, "isUrgent": n.is_urgent, "publishAt": n.publish_at.isoformat()}
            for n in (await self.db.execute(stmt)).scalars().all()
        ]

    async def get_student_dashboard(self) -> Dict[str, Any]:
        students = await self._own_students()
        if not students:
            raise NotFound("Student profile")
        student = students[0]
        summary = await self._learner_summary([student.id])
        return {
            "student": {
                "id": str(student.id),
                "studentCode": student.student_code,
                "firstName": student.first_name,
                "lastName": student.last_name,
                "status": student.status.value,
            },
            **summary,
            "notices": await self._recent_notices(),
        }

    async def get_parent_dashboard(self) -> Dict[str, Any]:
        children = await self._own_students()
        if not children:
            raise NotFound("Children")
        per_child = []
        for child in children:
            summary = await self._learner_summary([child.id])
            per_child.append({
                "id": str(child.id),
                "firstName": child.first_name,
                "lastName": child.last_name,
                "status": child.status.value,
                **summary["stats"],
            })
        overall = await self._learner_summary([c.id for c in children])
        return {
            "children": per_child,
            **overall,
            "notices": await self._recent_notices(),
        }
