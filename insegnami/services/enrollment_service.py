# insegnami/services/enrollment_service.py
"""Bulk enroll/unenroll with the class capacity invariant.

The class row is locked (``SELECT ... FOR UPDATE``) for the whole
check-and-write, so concurrent requests against one class serialize and
active enrollments never exceed ``max_students``. Each call commits once;
a failed check leaves the enrollment table untouched.
"""
import logging
from typing import Any, Dict, List, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AlreadyEnrolled, CapacityExceeded, NotFound, NothingToUnenroll
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404, scope_query
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.student import Student
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def dedupe(ids: Sequence[UUID]) -> List[UUID]:
    """Collapse repeated ids, keeping first-seen order."""
    return list(dict.fromkeys(ids))


class EnrollmentService:
    def __init__(self, db: AsyncSession, claims: Claims):
        self.db = db
        self.claims = claims

    async def _lock_class(self, class_id: UUID) -> ClassModel:
        return await get_scoped_or_404(self.db, ClassModel, class_id, self.claims, label="Class", for_update=True)

    async def active_count(self, class_id: UUID) -> int:
        stmt = select(func.count()).select_from(StudentClass).where(
            StudentClass.class_id == class_id,
            StudentClass.status == EnrollmentStatus.ACTIVE,
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def enroll(self, class_id: UUID, student_ids: Sequence[UUID]) -> Dict[str, Any]:
        ids = dedupe(student_ids)
        class_obj = await self._lock_class(class_id)

        current = await self.active_count(class_obj.id)
        available = max(class_obj.max_students - current, 0)
        if len(ids) > available:
            raise CapacityExceeded(available, len(ids))

        found_stmt = scope_query(select(Student.id).where(Student.id.in_(ids)), Student, self.claims)
        found = set((await self.db.execute(found_stmt)).scalars().all())
        missing = [str(i) for i in ids if i not in found]
        if missing:
            raise NotFound("Students", notFoundIds=missing)

        existing_stmt = select(StudentClass).where(
            StudentClass.class_id == class_obj.id,
            StudentClass.student_id.in_(ids),
        )
        existing = {row.student_id: row for row in (await self.db.execute(existing_stmt)).scalars().all()}

        to_create = [i for i in ids if i not in existing]
        to_reactivate = [existing[i] for i in ids if i in existing and not existing[i].is_active]
        if not to_create and not to_reactivate:
            raise AlreadyEnrolled()

        now = utcnow()
        for student_id in to_create:
            self.db.add(StudentClass(
                student_id=student_id,
                class_id=class_obj.id,
                status=EnrollmentStatus.ACTIVE,
                enrolled_at=now,
            ))
        for enrollment in to_reactivate:
            enrollment.status = EnrollmentStatus.ACTIVE
            enrollment.enrolled_at = now
            enrollment.dropped_at = None

        enrolled = len(to_create) + len(to_reactivate)
        class_obj.current_students = current + enrolled
        await self.db.commit()

        logger.info(
            f"Tenant {self.claims.tenant_id}: user {self.claims.user_id} enrolled {enrolled} students "
            f"in class {class_obj.id} ({len(to_create)} new, {len(to_reactivate)} reactivated)"
        )
        return {
            "message": f"{enrolled} students enrolled",
            "enrolledStudents": enrolled,
            "newEnrollments": len(to_create),
            "reactivatedEnrollments": len(to_reactivate),
            "currentStudents": class_obj.current_students,
            "availableCapacity": class_obj.max_students - class_obj.current_students,
        }

    async def unenroll(self, class_id: UUID, student_ids: Sequence[UUID]) -> Dict[str, Any]:
        ids = dedupe(student_ids)
        class_obj = await self._lock_class(class_id)

        stmt = select(StudentClass).where(
            StudentClass.class_id == class_obj.id,
            StudentClass.student_id.in_(ids),
            StudentClass.status == EnrollmentStatus.ACTIVE,
        )
        active = (await self.db.execute(stmt)).scalars().all()
        if not active:
            raise NothingToUnenroll()

        now = utcnow()
        for enrollment in active:
            enrollment.status = EnrollmentStatus.DROPPED
            enrollment.dropped_at = now

        current = await self.active_count(class_obj.id)
        class_obj.current_students = max(current - len(active), 0)
        await self.db.commit()

        logger.info(
            f"Tenant {self.claims.tenant_id}: user {self.claims.user_id} unenrolled {len(active)} students "
            f"from class {class_obj.id}"
        )
        return {
            "message": f"{len(active)} students unenrolled",
            "unenrolledStudents": len(active),
            "currentStudents": class_obj.current_students,
        }
