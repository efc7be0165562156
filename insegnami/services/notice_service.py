# insegnami/services/notice_service.py
import logging
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import Forbidden
from ..core.permissions import Action, PolicyContext, authorize
from ..core.security import Claims
from ..models.shared.user import Role
from ..models.tenant_specific.notice import Notice, NoticeAudience, NoticeType
from ..schemas.communication_schemas import NoticeCreate, NoticeUpdate
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class NoticeService(BaseService[Notice]):
    label = "Notice"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Notice, db, claims)

    async def list_notices(
        self,
        page: int = 1,
        limit: int = 20,
        type: Optional[NoticeType] = None,
        urgent_only: bool = False,
    ) -> Dict[str, Any]:
        criteria = []
        if type:
            criteria.append(Notice.type == type)
        if urgent_only:
            criteria.append(Notice.is_urgent.is_(True))
        return await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[Notice.is_pinned.desc(), Notice.is_urgent.desc(), Notice.publish_at.desc()],
        )

    def _authorize_flags(self, is_urgent: bool, is_pinned: bool, notice_type: NoticeType) -> None:
        authorize(
            self.claims,
            Action.NOTICE_CREATE,
            PolicyContext(is_urgent=is_urgent or notice_type == NoticeType.URGENT, is_pinned=is_pinned),
        )

    @staticmethod
    def _audiences(roles: Iterable[Role]):
        return [NoticeAudience(role=role) for role in dict.fromkeys(roles)]

    async def create_notice(self, data: NoticeCreate) -> Notice:
        # Checked before anything is written
        self._authorize_flags(data.is_urgent, data.is_pinned, data.type)
        payload = data.model_dump(exclude={"target_roles"})
        payload["publish_at"] = payload.get("publish_at") or utcnow()
        notice = Notice(**payload, author_id=self.claims.user_id, tenant_id=self.tenant_id)
        notice.audiences = self._audiences(data.target_roles)
        self.db.add(notice)
        await self.db.commit()
        await self.db.refresh(notice)
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} published notice {notice.id}")
        return notice

    async def update_notice(self, notice_id: UUID, data: NoticeUpdate) -> Notice:
        notice = await self.get(notice_id)
        if not self.claims.is_admin and notice.author_id != self.claims.user_id:
            raise Forbidden("Only the author or an admin may edit this notice")

        changes = data.model_dump(exclude_unset=True)
        self._authorize_flags(
            changes.get("is_urgent", notice.is_urgent),
            changes.get("is_pinned", notice.is_pinned),
            changes.get("type") or notice.type,
        )
        roles = changes.pop("target_roles", None)
        for key, value in changes.items():
            setattr(notice, key, value)
        if roles is not None:
            # Keep rows for roles that stay so the (notice, role) key never collides
            wanted = set(roles)
            notice.audiences = [a for a in notice.audiences if a.role in wanted] + self._audiences(
                r for r in roles if r not in {a.role for a in notice.audiences}
            )
        await self.db.commit()
        await self.db.refresh(notice)
        return notice

    async def delete_notice(self, notice_id: UUID) -> None:
        await self.hard_delete(notice_id)
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deleted notice {notice_id}")

    @staticmethod
    def format(notice: Notice) -> Dict[str, Any]:
        return {
            "id": str(notice.id),
            "tenantId": str(notice.tenant_id),
            "authorId": str(notice.author_id) if notice.author_id else None,
            "title": notice.title,
            "content": notice.content,
            "type": notice.type.value,
            "isPublic": notice.is_public,
            "isPinned": notice.is_pinned,
            "isUrgent": notice.is_urgent,
            "publishAt": notice.publish_at.isoformat(),
            "expiresAt": notice.expires_at.isoformat() if notice.expires_at else None,
            "targetRoles": notice.target_roles,
            "createdAt": notice.created_at.isoformat(),
        }
