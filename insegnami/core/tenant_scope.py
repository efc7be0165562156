# insegnami/core/tenant_scope.py
"""Tenant scoping filter.

``scope_query`` conjoins the caller's tenant (unless SUPERADMIN) and the
role's ownership narrowing onto any SELECT/UPDATE/DELETE statement. Every
read and write path in the services goes through it; ownership is
expressed as subqueries so scoping never costs an extra round trip.
"""
from typing import Any, Callable, Dict, Iterable, Optional, Type
from uuid import UUID

from sqlalchemy import false, or_, select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from .exceptions import NotFound
from .security import Claims
from ..models.shared.user import Role
from ..models.tenant_specific.teacher import Teacher
from ..models.tenant_specific.student import Student
from ..models.tenant_specific.class_model import ClassModel
from ..models.tenant_specific.enrollment import StudentClass, EnrollmentStatus
from ..models.tenant_specific.lesson import Lesson
from ..models.tenant_specific.attendance import Attendance
from ..models.tenant_specific.payment import Payment
from ..models.tenant_specific.notice import Notice, NoticeAudience
from ..models.tenant_specific.notification import Notification
from ..utils.timeutils import utcnow

LEARNER_ROLES = (Role.STUDENT, Role.PARENT)


# Ownership subqueries

def teacher_ids(claims: Claims):
    """Teacher rows linked to the caller's login."""
    return select(Teacher.id).where(
        Teacher.user_id == claims.user_id,
        Teacher.tenant_id == claims.tenant_id,
    )


def teacher_class_ids(claims: Claims):
    return select(ClassModel.id).where(ClassModel.teacher_id.in_(teacher_ids(claims)))


def own_student_ids(claims: Claims):
    """The caller's own student row (STUDENT) or their children (PARENT)."""
    column = Student.parent_user_id if claims.role == Role.PARENT else Student.user_id
    return select(Student.id).where(column == claims.user_id, Student.tenant_id == claims.tenant_id)


def learner_class_ids(claims: Claims):
    return select(StudentClass.class_id).where(
        StudentClass.student_id.in_(own_student_ids(claims)),
        StudentClass.status == EnrollmentStatus.ACTIVE,
    )


def teacher_lesson_predicate(claims: Claims):
    return or_(
        Lesson.teacher_id.in_(teacher_ids(claims)),
        Lesson.class_id.in_(teacher_class_ids(claims)),
    )


def tenant_class_ids(claims: Claims):
    return select(ClassModel.id).where(ClassModel.tenant_id == claims.tenant_id)


# Per-entity ownership rules, keyed by role

def _student_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return Student.id.in_(
            select(StudentClass.student_id).where(
                StudentClass.class_id.in_(teacher_class_ids(claims)),
                StudentClass.status == EnrollmentStatus.ACTIVE,
            )
        )
    if claims.role in LEARNER_ROLES:
        return Student.id.in_(own_student_ids(claims))
    return None


def _teacher_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return Teacher.user_id == claims.user_id
    if claims.role in LEARNER_ROLES:
        return false()
    return None


def _class_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return ClassModel.id.in_(teacher_class_ids(claims))
    if claims.role in LEARNER_ROLES:
        return ClassModel.id.in_(learner_class_ids(claims))
    return None


def _enrollment_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return StudentClass.class_id.in_(teacher_class_ids(claims))
    if claims.role in LEARNER_ROLES:
        return StudentClass.student_id.in_(own_student_ids(claims))
    return None


def _lesson_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return teacher_lesson_predicate(claims)
    if claims.role in LEARNER_ROLES:
        return Lesson.class_id.in_(learner_class_ids(claims))
    return None


def _attendance_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return Attendance.lesson_id.in_(select(Lesson.id).where(teacher_lesson_predicate(claims)))
    if claims.role in LEARNER_ROLES:
        return Attendance.student_id.in_(own_student_ids(claims))
    return None


def _payment_ownership(claims: Claims):
    if claims.role == Role.TEACHER:
        return false()
    if claims.role in LEARNER_ROLES:
        return Payment.student_id.in_(own_student_ids(claims))
    return None


def _notice_ownership(claims: Claims):
    if claims.role in (Role.ADMIN, Role.SUPERADMIN):
        return None
    now = utcnow()
    visible = (
        exists().where(
            NoticeAudience.notice_id == Notice.id,
            NoticeAudience.role == claims.role,
        )
        & (Notice.publish_at <= now)
        & or_(Notice.expires_at.is_(None), Notice.expires_at > now)
    )
    # Authors keep access to their own notices whatever the audience or window
    if claims.role == Role.TEACHER:
        return or_(Notice.author_id == claims.user_id, visible)
    return visible


def _notification_ownership(claims: Claims):
    return Notification.user_id == claims.user_id


OWNERSHIP_RULES: Dict[Type[Any], Callable[[Claims], Any]] = {
    Student: _student_ownership,
    Teacher: _teacher_ownership,
    ClassModel: _class_ownership,
    StudentClass: _enrollment_ownership,
    Lesson: _lesson_ownership,
    Attendance: _attendance_ownership,
    Payment: _payment_ownership,
    Notice: _notice_ownership,
    Notification: _notification_ownership,
}


def tenant_predicate(entity: Type[Any], claims: Claims):
    if hasattr(entity, "tenant_id"):
        return entity.tenant_id == claims.tenant_id
    if entity is StudentClass:
        return StudentClass.class_id.in_(tenant_class_ids(claims))
    raise ValueError(f"{entity.__name__} is not tenant-scoped")


def scope_query(stmt, entity: Type[Any], claims: Claims, *, owned_only: bool = True):
    """Conjoin tenant and ownership predicates for ``entity`` onto ``stmt``.

    ``owned_only=False`` keeps the tenant filter but skips ownership
    narrowing; admins use it to manage other users' notifications.
    """
    if entity not in OWNERSHIP_RULES:
        raise ValueError(f"No scoping rule for {entity.__name__}")

    if not claims.is_superadmin:
        stmt = stmt.where(tenant_predicate(entity, claims))

    if owned_only:
        predicate = OWNERSHIP_RULES[entity](claims)
        if predicate is not None:
            stmt = stmt.where(predicate)
    return stmt


async def get_scoped_or_404(
    db: AsyncSession,
    entity: Type[Any],
    id: UUID,
    claims: Claims,
    label: Optional[str] = None,
    options: Iterable[Any] = (),
    for_update: bool = False,
    owned_only: bool = True,
):
    """Fetch one row by id inside the caller's scope.

    Rows in another tenant, or outside the caller's ownership, are reported
    as not found so their existence is never leaked.
    """
    stmt = scope_query(select(entity).where(entity.id == id), entity, claims, owned_only=owned_only)
    for option in options:
        stmt = stmt.options(option)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    obj = result.scalar_one_or_none()
    if obj is None:
        raise NotFound(label or entity.__name__, id)
    return obj
