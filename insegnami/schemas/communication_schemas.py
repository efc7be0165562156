# insegnami/schemas/communication_schemas.py
"""Pydantic schemas for notices, notifications and messages."""
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID
from pydantic import Field, model_validator

from .base import RequestSchema
from ..models.shared.user import Role
from ..models.tenant_specific.notice import NoticeType
from ..models.tenant_specific.notification import (
    NotificationPriority, NotificationStatus, NotificationType
)


class NoticeCreate(RequestSchema):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: NoticeType = NoticeType.ANNOUNCEMENT
    is_public: bool = True
    publish_at: Optional[datetime] = Field(default=None, description="Defaults to now")
    expires_at: Optional[datetime] = None
    is_pinned: bool = False
    is_urgent: bool = False
    target_roles: List[Role] = Field(..., min_length=1)

    @model_validator(mode='after')
    def validate_window(self):
        if self.publish_at and self.expires_at and self.expires_at <= self.publish_at:
            raise ValueError('expires_at must be after publish_at')
        return self


class NoticeUpdate(RequestSchema):
    not_nullable = (
        "title", "content", "type", "is_public", "publish_at", "is_pinned", "is_urgent", "target_roles"
    )

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    content: Optional[str] = Field(default=None, min_length=1)
    type: Optional[NoticeType] = None
    is_public: Optional[bool] = None
    publish_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_pinned: Optional[bool] = None
    is_urgent: Optional[bool] = None
    target_roles: Optional[List[Role]] = Field(default=None, min_length=1)


class NotificationCreate(RequestSchema):
    user_id: Optional[UUID] = Field(default=None, description="Defaults to the caller")
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.SYSTEM
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: Optional[str] = Field(default=None, max_length=500)
    source_type: Optional[str] = Field(default=None, max_length=50)
    source_id: Optional[str] = Field(default=None, max_length=64)
    scheduled_for: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class NotificationUpdate(RequestSchema):
    """Either an explicit ``status`` or a shorthand ``action``."""
    status: Optional[NotificationStatus] = None
    action: Optional[Literal["markAsRead", "markAsUnread", "dismiss"]] = None

    @model_validator(mode='after')
    def validate_target(self):
        if self.status is None and self.action is None:
            raise ValueError('status or action is required')
        return self

    @property
    def target_status(self) -> NotificationStatus:
        if self.action == "markAsRead":
            return NotificationStatus.READ
        if self.action == "markAsUnread":
            return NotificationStatus.UNREAD
        if self.action == "dismiss":
            return NotificationStatus.DISMISSED
        return self.status


class MessageCreate(RequestSchema):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    recipient_ids: List[UUID] = Field(default_factory=list, max_length=500)
    class_id: Optional[UUID] = Field(default=None, description="Send to the students and parents of a class")
    priority: NotificationPriority = NotificationPriority.NORMAL
    send_email: bool = False
    email_subject: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode='after')
    def validate_recipients(self):
        if not self.recipient_ids and self.class_id is None:
            raise ValueError('recipient_ids or class_id is required')
        return self
