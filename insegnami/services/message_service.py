# insegnami/services/message_service.py
"""Teacher/admin messages, delivered as notifications plus optional email."""
import logging
import uuid
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .notification_service import NotificationService
from ..core.exceptions import ValidationFailed
from ..core.queue import JobQueue
from ..core.security import Claims
from ..core.tenant_scope import get_scoped_or_404
from ..models.shared.user import User
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.enrollment import EnrollmentStatus, StudentClass
from ..models.tenant_specific.notification import NotificationType
from ..models.tenant_specific.student import Student
from ..schemas.communication_schemas import MessageCreate

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, db: AsyncSession, claims: Claims, queue: Optional[JobQueue] = None):
        self.db = db
        self.claims = claims
        self.queue = queue
        self.notifications = NotificationService(db, claims)

    async def _class_recipients(self, class_id: UUID) -> List[UUID]:
        """Logins of the students actively enrolled in a class, and of their parents."""
        class_obj = await get_scoped_or_404(self.db, ClassModel, class_id, self.claims, label="Class")
        stmt = (
            select(Student.user_id, Student.parent_user_id)
            .join(StudentClass, StudentClass.student_id == Student.id)
            .where(
                StudentClass.class_id == class_obj.id,
                StudentClass.status == EnrollmentStatus.ACTIVE,
            )
        )
        ids: List[UUID] = []
        for user_id, parent_user_id in (await self.db.execute(stmt)).all():
            ids.extend(i for i in (user_id, parent_user_id) if i is not None)
        return ids

    async def send(self, data: MessageCreate) -> Dict[str, Any]:
        recipients: List[UUID] = []
        if data.recipient_ids:
            valid = await self.notifications.tenant_user_ids(data.recipient_ids)
            invalid = [str(i) for i in data.recipient_ids if i not in set(valid)]
            if invalid:
                raise ValidationFailed(
                    "Some recipients are not valid",
                    details=[{"field": "recipientIds", "message": "not a member of this school", "value": i} for i in invalid],
                )
            recipients.extend(valid)
        if data.class_id:
            recipients.extend(await self._class_recipients(data.class_id))

        recipients = list(dict.fromkeys(recipients))
        if not recipients:
            raise ValidationFailed("The message has no recipients")

        message_id = uuid.uuid4().hex
        await self.notifications.notify_users(
            recipients,
            title=data.title,
            content=data.content,
            type=NotificationType.MESSAGE,
            priority=data.priority,
            source_type="message",
            source_id=message_id,
        )

        emails_queued = 0
        if data.send_email and self.queue is not None:
            emails = (await self.db.execute(select(User.email).where(User.id.in_(recipients)))).scalars().all()
            for email in emails:
                if await self.queue.enqueue_email(to=email, subject=data.email_subject or data.title, html=data.content):
                    emails_queued += 1

        logger.info(
            f"Tenant {self.claims.tenant_id}: user {self.claims.user_id} sent message {message_id} "
            f"to {len(recipients)} recipients ({emails_queued} emails queued)"
        )
        return {"messageId": message_id, "recipients": len(recipients), "emailsQueued": emails_queued}
