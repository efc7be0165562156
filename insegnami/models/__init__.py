# insegnami/models/__init__.py
"""Import all models here so Alembic and create_all see every table."""
from .base import Base

# Shared models
from .shared.tenant import Tenant
from .shared.user import User, TenantMembership, VerificationToken, Role, UserStatus, TokenPurpose

# Tenant-specific models
from .tenant_specific.teacher import Teacher, TeacherStatus
from .tenant_specific.student import Student, StudentStatus
from .tenant_specific.class_model import ClassModel
from .tenant_specific.enrollment import StudentClass, EnrollmentStatus
from .tenant_specific.lesson import Lesson, LessonStatus
from .tenant_specific.attendance import Attendance, AttendanceStatus
from .tenant_specific.payment import Payment, PaymentStatus, PaymentMethod
from .tenant_specific.notice import Notice, NoticeAudience, NoticeType
from .tenant_specific.notification import (
    Notification, NotificationType, NotificationPriority, NotificationStatus
)
