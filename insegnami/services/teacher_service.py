# insegnami/services/teacher_service.py
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import Conflict
from ..core.security import Claims
from ..models.lifecycle import ensure_transition
from ..models.tenant_specific.teacher import Teacher, TeacherStatus
from ..schemas.people_schemas import TeacherCreate, TeacherUpdate
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class TeacherService(BaseService[Teacher]):
    label = "Teacher"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Teacher, db, claims)

    async def list_teachers(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        status: Optional[TeacherStatus] = None,
    ) -> Dict[str, Any]:
        criteria = []
        if search:
            term = f"%{search.lower()}%"
            criteria.append(or_(
                func.lower(Teacher.first_name).like(term),
                func.lower(Teacher.last_name).like(term),
                func.lower(Teacher.email).like(term),
                func.lower(Teacher.specialization).like(term),
            ))
        if status:
            criteria.append(Teacher.status == status)
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[Teacher.last_name.asc(), Teacher.first_name.asc()],
        )

    async def _email_taken(self, email: str, exclude_id: Optional[UUID] = None) -> bool:
        stmt = select(Teacher.id).where(Teacher.tenant_id == self.tenant_id, func.lower(Teacher.email) == email.lower())
        if exclude_id is not None:
            stmt = stmt.where(Teacher.id != exclude_id)
        return (await self.db.execute(stmt)).first() is not None

    async def create_teacher(self, data: TeacherCreate) -> Teacher:
        if await self._email_taken(data.email):
            raise Conflict(f"A teacher with email {data.email} already exists")
        payload = data.model_dump(exclude_none=True)
        payload["email"] = payload["email"].lower()
        teacher = await self.create({**payload, "status": TeacherStatus.ACTIVE})
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} created teacher {teacher.id}")
        return teacher

    async def update_teacher(self, teacher_id: UUID, data: TeacherUpdate) -> Teacher:
        teacher = await self.get(teacher_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            if await self._email_taken(changes["email"], exclude_id=teacher.id):
                raise Conflict(f"A teacher with email {changes['email']} already exists")
            changes["email"] = changes["email"].lower()
        new_status = changes.pop("status", None)
        if new_status is not None and new_status != teacher.status:
            ensure_transition("Teacher", teacher.status, new_status)
            teacher.status = new_status
        for key, value in changes.items():
            setattr(teacher, key, value)
        await self.db.commit()
        await self.db.refresh(teacher)
        return teacher

    async def deactivate(self, teacher_id: UUID) -> Teacher:
        teacher = await self.get(teacher_id)
        ensure_transition("Teacher", teacher.status, TeacherStatus.INACTIVE)
        teacher.status = TeacherStatus.INACTIVE
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deactivated teacher {teacher.id}")
        return teacher

    async def bulk_deactivate(self, ids: List[UUID]) -> int:
        stmt = self.scoped(
            update(Teacher)
            .where(Teacher.id.in_(ids), Teacher.status == TeacherStatus.ACTIVE)
            .values(status=TeacherStatus.INACTIVE, updated_at=utcnow())
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        logger.info(
            f"Tenant {self.tenant_id}: user {self.claims.user_id} bulk-deactivated {result.rowcount} teachers"
        )
        return result.rowcount

    @staticmethod
    def format(teacher: Teacher) -> Dict[str, Any]:
        return {
            "id": str(teacher.id),
            "tenantId": str(teacher.tenant_id),
            "userId": str(teacher.user_id) if teacher.user_id else None,
            "firstName": teacher.first_name,
            "lastName": teacher.last_name,
            "email": teacher.email,
            "phone": teacher.phone,
            "specialization": teacher.specialization,
            "status": teacher.status.value,
            "createdAt": teacher.created_at.isoformat(),
        }
