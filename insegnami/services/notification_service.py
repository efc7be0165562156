# insegnami/services/notification_service.py
import logging
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .base_service import BaseService
from ..core.exceptions import NotFound
from ..core.permissions import Action, authorize
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404
from ..models.lifecycle import ensure_transition
from ..models.shared.user import TenantMembership
from ..models.tenant_specific.notification import (
    PRIORITY_RANK, Notification, NotificationPriority, NotificationStatus, NotificationType
)
from ..schemas.communication_schemas import NotificationCreate
from ..utils.timeutils import utcnow

logger = logging.getLogger(__name__)

priority_order = case(
    *[(Notification.priority == p, rank) for p, rank in PRIORITY_RANK.items()],
    else_=0,
)


class NotificationService(BaseService[Notification]):
    label = "Notification"

    def __init__(self, db: AsyncSession, claims: Claims):
        super().__init__(Notification, db, claims)

    def _visible_now(self):
        now = utcnow()
        return [
            or_(Notification.scheduled_for.is_(None), Notification.scheduled_for <= now),
            or_(Notification.expires_at.is_(None), Notification.expires_at > now),
        ]

    async def list_own(
        self,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
        type: Optional[NotificationType] = None,
        include_dismissed: bool = False,
    ) -> Dict[str, Any]:
        criteria = self._visible_now()
        if unread_only:
            criteria.append(Notification.status == NotificationStatus.UNREAD)
        elif not include_dismissed:
            criteria.append(Notification.status != NotificationStatus.DISMISSED)
        if type:
            criteria.append(Notification.type == type)
        result = await self.get_paginated(
            page=page,
            limit=limit,
            criteria=criteria,
            order_by=[priority_order.desc(), Notification.created_at.desc()],
        )
        result["unreadCount"] = await self.count(
            Notification.status == NotificationStatus.UNREAD, *self._visible_now()
        )
        return result

    async def change_status(self, notification_id: UUID, status: NotificationStatus) -> Notification:
        notification = await self.get(notification_id)
        ensure_transition("Notification", notification.status, status)
        notification.status = status
        now = utcnow()
        if status == NotificationStatus.READ:
            notification.read_at = now
        elif status == NotificationStatus.UNREAD:
            notification.read_at = None
        elif status == NotificationStatus.DISMISSED:
            notification.dismissed_at = now
        await self.db.commit()
        return notification

    async def mark_all_read(self) -> int:
        now = utcnow()
        stmt = self.scoped(
            update(Notification)
            .where(Notification.status == NotificationStatus.UNREAD)
            .values(status=NotificationStatus.READ, read_at=now, updated_at=now)
        ).execution_options(synchronize_session=False)
        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount

    async def tenant_user_ids(self, user_ids: Iterable[UUID]) -> List[UUID]:
        ids = list(dict.fromkeys(user_ids))
        stmt = select(TenantMembership.user_id).where(
            TenantMembership.tenant_id == self.tenant_id,
            TenantMembership.user_id.in_(ids),
        )
        members = set((await self.db.execute(stmt)).scalars().all())
        return [i for i in ids if i in members]

    async def create_notification(self, data: NotificationCreate) -> Notification:
        target = data.user_id or self.claims.user_id
        if target != self.claims.user_id:
            authorize(self.claims, Action.NOTIFICATION_SEND)
            if not await self.tenant_user_ids([target]):
                raise NotFound("User", target)
        return await self.create({**data.model_dump(exclude={"user_id"}), "user_id": target})

    async def notify_users(
        self,
        user_ids: Iterable[UUID],
        title: str,
        content: str,
        type: NotificationType = NotificationType.SYSTEM,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        source_type: Optional[str] = None,
        source_id: Optional[str] = None,
        commit: bool = True,
    ) -> List[Notification]:
        """Fan one notification out to several users of the caller's tenant."""
        notifications = [
            Notification(
                tenant_id=self.tenant_id,
                user_id=user_id,
                title=title,
                content=content,
                type=type,
                priority=priority,
                status=NotificationStatus.UNREAD,
                source_type=source_type,
                source_id=source_id,
            )
            for user_id in dict.fromkeys(user_ids)
        ]
        self.db.add_all(notifications)
        if commit:
            await self.db.commit()
        return notifications

    async def delete_notification(self, notification_id: UUID) -> None:
        """Admin hard delete of any notification in the tenant."""
        notification = await get_scoped_or_404(
            self.db, Notification, notification_id, self.claims, label="Notification", owned_only=False
        )
        await self.db.delete(notification)
        await self.db.commit()
        logger.info(f"Tenant {self.tenant_id}: user {self.claims.user_id} deleted notification {notification_id}")

    @staticmethod
    def format(notification: Notification) -> Dict[str, Any]:
        return {
            "id": str(notification.id),
            "userId": str(notification.user_id),
            "title": notification.title,
            "content": notification.content,
            "type": notification.type.value,
            "priority": notification.priority.value,
            "status": notification.status.value,
            "actionUrl": notification.action_url,
            "sourceType": notification.source_type,
            "sourceId": notification.source_id,
            "scheduledFor": notification.scheduled_for.isoformat() if notification.scheduled_for else None,
            "expiresAt": notification.expires_at.isoformat() if notification.expires_at else None,
            "readAt": notification.read_at.isoformat() if notification.read_at else None,
            "createdAt": notification.created_at.isoformat(),
        }
