# insegnami/services/attendance_service.py
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import ValidationFailed
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404
from ..models.tenant_specific.attendance import Attendance, AttendanceStatus
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.lesson import Lesson, LessonStatus
from ..schemas.record_schemas import AttendanceRecord, BulkAttendanceRequest
from ..utils.aggregation import summarize_attendance

logger = logging.getLogger(__name__)


class AttendanceService(BaseService[Attendance]):
    label = "Attendance"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Attendance, db, claims)

    def _filters(
        self,
        lesson_id: Optional[UUID] = None,
        student_id: Optional[UUID] = None,
        class_id: Optional[UUID] = None,
        status: Optional[AttendanceStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        criteria = []
        if lesson_id:
            criteria.append(Attendance.lesson_id == lesson_id)
        if student_id:
            criteria.append(Attendance.student_id == student_id)
        if status:
            criteria.append(Attendance.status == status)
        if class_id or start_date or end_date:
            lessons = select(Lesson.id)
            if class_id:
                lessons = lessons.where(Lesson.class_id == class_id)
            if start_date:
                lessons = lessons.where(Lesson.start_time >= start_date)
            if end_date:
                lessons = lessons.where(Lesson.start_time <= end_date)
            criteria.append(Attendance.lesson_id.in_(lessons))
        return criteria

    async def list_attendance(self, page: int = 1, limit: int = 20, **filters) -> Dict[str, Any]:
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=self._filters(**filters),
            order_by=[Attendance.created_at.desc()],
        )

    async def _recordable_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await get_scoped_or_404(self.db, Lesson, lesson_id, self.claims, label="Lesson")
        if lesson.status == LessonStatus.CANCELLED:
            raise ValidationFailed("Attendance cannot be recorded for a cancelled lesson")
        return lesson

    async def _check_enrolled(self, lesson: Lesson, student_ids: Iterable[UUID]) -> None:
        ids = list(student_ids)
        stmt = select(StudentClass.student_id).where(
            StudentClass.class_id == lesson.class_id,
            StudentClass.student_id.in_(ids),
            StudentClass.status == EnrollmentStatus.ACTIVE,
        )
        enrolled = set((await self.db.execute(stmt)).scalars().all())
        not_enrolled = [str(i) for i in ids if i not in enrolled]
        if not_enrolled:
            raise ValidationFailed(
                "Some students are not enrolled in this lesson's class",
                details=[{"field": "studentId", "message": "not enrolled", "value": i} for i in not_enrolled],
            )

    async def _upsert(self, lesson: Lesson, entries: Sequence[Any]) -> Dict[str, int]:
        existing_stmt = select(Attendance).where(
            Attendance.lesson_id == lesson.id,
            Attendance.student_id.in_([e.student_id for e in entries]),
        )
        existing = {a.student_id: a for a in (await self.db.execute(existing_stmt)).scalars().all()}
        created = updated = 0
        for entry in entries:
            record = existing.get(entry.student_id)
            if record is None:
                self.db.add(Attendance(
                    tenant_id=lesson.tenant_id,
                    lesson_id=lesson.id,
                    student_id=entry.student_id,
                    status=entry.status,
                    notes=entry.notes,
                    recorded_by=self.claims.user_id,
                ))
                created += 1
            else:
                record.status = entry.status
                record.notes = entry.notes
                record.recorded_by = self.claims.user_id
                updated += 1
        return {"created": created, "updated": updated}

    async def record(self, data: AttendanceRecord) -> Attendance:
        """Record one student's attendance; re-recording overwrites."""
        lesson = await self._recordable_lesson(data.lesson_id)
        await self._check_enrolled(lesson, [data.student_id])
        await self._upsert(lesson, [data])
        await self.db.commit()
        stmt = select(Attendance).where(Attendance.lesson_id == lesson.id, Attendance.student_id == data.student_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def bulk_record(self, data: BulkAttendanceRequest) -> Dict[str, Any]:
        lesson = await self._recordable_lesson(data.lesson_id)
        await self._check_enrolled(lesson, [r.student_id for r in data.records])
        counts = await self._upsert(lesson, data.records)
        await self.db.commit()
        logger.info(
            f"Tenant {self.tenant_id}: user {self.claims.user_id} recorded attendance for lesson {lesson.id} "
            f"({counts['created']} new, {counts['updated']} updated)"
        )
        return {
            "lessonId": str(lesson.id),
            "recorded": counts["created"] + counts["updated"],
            **counts,
        }

    async def get_stats(self, **filters) -> Dict[str, Any]:
        stmt = self.scoped(
            select(Attendance.status, func.count()).select_from(Attendance)
        ).where(*self._filters(**filters)).group_by(Attendance.status)
        counts = dict((await self.db.execute(stmt)).all())
        return summarize_attendance(counts)

    @staticmethod
    def format(record: Attendance) -> Dict[str, Any]:
        return {
            "id": str(record.id),
            "tenantId": str(record.tenant_id),
            "lessonId": str(record.lesson_id),
            "studentId": str(record.student_id),
            "status": record.status.value,
            "notes": record.notes,
            "recordedBy": str(record.recorded_by) if record.recorded_by else None,
            "recordedAt": record.updated_at.isoformat(),
        }
