# insegnami/services/lesson_service.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .base_service import BaseService
from ..core.exceptions import Forbidden, NotFound, ValidationFailed
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404
from ..models.lifecycle import ensure_transition
from ..models.shared.user import Role
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.lesson import Lesson, LessonStatus
from ..models.tenant_specific.teacher import Teacher
from ..schemas.class_schemas import LessonCreate, LessonUpdate

logger = logging.getLogger(__name__)


class LessonService(BaseService[Lesson]):
    label = "Lesson"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Lesson, db, claims)

    async def list_lessons(
        self,
        page: int = 1,
        limit: int = 20,
        class_id: Optional[UUID] = None,
        teacher_id: Optional[UUID] = None,
        status: Optional[LessonStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        criteria = []
        if class_id:
            criteria.append(Lesson.class_id == class_id)
        if teacher_id:
            criteria.append(Lesson.teacher_id == teacher_id)
        if status:
            criteria.append(Lesson.status == status)
        if start_date:
            criteria.append(Lesson.start_time >= start_date)
        if end_date:
            criteria.append(Lesson.start_time <= end_date)
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[Lesson.start_time.asc()],
            options=[selectinload(Lesson.class_ref)],
        )

    async def get_lesson(self, lesson_id: UUID) -> Lesson:
        return await self.get(lesson_id, options=[selectinload(Lesson.class_ref)])

    async def _own_teacher_id(self) -> Optional[UUID]:
        stmt = select(Teacher.id).where(Teacher.user_id == self.claims.user_id, Teacher.tenant_id == self.tenant_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _resolve_teacher(self, class_obj: ClassModel, teacher_id: Optional[UUID]) -> Optional[UUID]:
        if self.claims.role == Role.TEACHER:
            own = await self._own_teacher_id()
            if own is None or class_obj.teacher_id != own:
                raise Forbidden("Teachers may only schedule lessons for their own classes")
            return own
        if teacher_id is None:
            return class_obj.teacher_id
        stmt = select(Teacher.id).where(Teacher.id == teacher_id, Teacher.tenant_id == class_obj.tenant_id)
        if (await self.db.execute(stmt)).first() is None:
            raise NotFound("Teacher", teacher_id)
        return teacher_id

    async def create_lesson(self, data: LessonCreate) -> Lesson:
        class_obj = await get_scoped_or_404(self.db, ClassModel, data.class_id, self.claims, label="Class", owned_only=False)
        teacher_id = await self._resolve_teacher(class_obj, data.teacher_id)
        lesson = await self.create({
            **data.model_dump(exclude={"teacher_id"}),
            "teacher_id": teacher_id,
            "status": LessonStatus.SCHEDULED,
        })
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} scheduled lesson {lesson.id}")
        return await self.get_lesson(lesson.id)

    async def update_lesson(self, lesson_id: UUID, data: LessonUpdate) -> Lesson:
        lesson = await self.get(lesson_id)
        changes = data.model_dump(exclude_unset=True)
        if "teacher_id" in changes:
            if self.claims.role == Role.TEACHER:
                raise Forbidden("Teachers cannot reassign lessons")
            class_obj = await self.db.get(ClassModel, lesson.class_id)
            changes["teacher_id"] = await self._resolve_teacher(class_obj, changes["teacher_id"])
        start = changes.get("start_time", lesson.start_time)
        end = changes.get("end_time", lesson.end_time)
        if end <= start:
            raise ValidationFailed(details=[{"field": "end_time", "message": "end_time must be after start_time"}])
        for key, value in changes.items():
            setattr(lesson, key, value)
        await self.db.commit()
        return await self.get_lesson(lesson.id)

    async def change_status(self, lesson_id: UUID, status: LessonStatus) -> Lesson:
        lesson = await self.get(lesson_id)
        ensure_transition("Lesson", lesson.status, status)
        lesson.status = status
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: lesson {lesson.id} moved to {status.value}")
        return await self.get_lesson(lesson.id)

    async def delete_lesson(self, lesson_id: UUID) -> None:
        """Hard delete; the lesson's attendance rows go with it."""
        await self.hard_delete(lesson_id, options=[selectinload(Lesson.attendances)])
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deleted lesson {lesson_id}")

    @staticmethod
    def format(lesson: Lesson) -> Dict[str, Any]:
        class_ref = lesson.__dict__.get("class_ref")
        return {
            "id": str(lesson.id),
            "tenantId": str(lesson.tenant_id),
            "classId": str(lesson.class_id),
            "className": class_ref.name if class_ref is not None else None,
            "teacherId": str(lesson.teacher_id) if lesson.teacher_id else None,
            "title": lesson.title,
            "description": lesson.description,
            "startTime": lesson.start_time.isoformat(),
            "endTime": lesson.end_time.isoformat(),
            "room": lesson.room,
            "status": lesson.status.value,
        }
