# insegnami/models/tenant_specific/notification.py
import enum
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, Enum, Uuid, Index
from ..base import Base


class NotificationType(str, enum.Enum):
    SYSTEM = "SYSTEM"
    MESSAGE = "MESSAGE"
    ATTENDANCE = "ATTENDANCE"
    PAYMENT = "PAYMENT"
    LESSON = "LESSON"
    NOTICE = "NOTICE"
    REMINDER = "REMINDER"


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationStatus(str, enum.Enum):
    UNREAD = "UNREAD"
    READ = "READ"
    DISMISSED = "DISMISSED"


# Sort order for "priority desc"; string enums would sort alphabetically
PRIORITY_RANK = {
    NotificationPriority.LOW: 0,
    NotificationPriority.NORMAL: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.URGENT: 3,
}


class Notification(Base):
    __tablename__ = "notifications"

    # Foreign Keys
    tenant_id = Column(Uuid, ForeignKey("tenants.id"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(Enum(NotificationType, name="notification_type"), nullable=False)
    priority = Column(Enum(NotificationPriority, name="notification_priority"), default=NotificationPriority.NORMAL, nullable=False)
    status = Column(Enum(NotificationStatus, name="notification_status"), default=NotificationStatus.UNREAD, nullable=False)

    action_url = Column(String(500))
    source_type = Column(String(50))
    source_id = Column(String(64))
    scheduled_for = Column(DateTime)
    expires_at = Column(DateTime)
    read_at = Column(DateTime)
    dismissed_at = Column(DateTime)
    email_sent = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_notification_user_status", "user_id", "status"),
    )
