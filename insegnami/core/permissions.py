# insegnami/core/permissions.py
"""Role-permission policy.

Every route asks ``authorize`` (or the ``require`` dependency) before it
touches the database, so the whole rule set lives here and can be tested
without HTTP. ``can_perform`` is a pure decision function; ``authorize``
layers the membership's permission overrides on top and raises.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID

from .exceptions import Forbidden
from .security import Claims
from ..models.shared.user import Role


class Action(str, enum.Enum):
    STUDENT_READ = "student:read"
    STUDENT_WRITE = "student:write"
    STUDENT_BULK_DELETE = "student:bulk_delete"
    STUDENT_EXPORT = "student:export"
    STUDENT_STATS = "student:stats"

    TEACHER_READ = "teacher:read"
    TEACHER_WRITE = "teacher:write"
    TEACHER_BULK_DELETE = "teacher:bulk_delete"
    TEACHER_EXPORT = "teacher:export"

    CLASS_READ = "class:read"
    CLASS_WRITE = "class:write"
    CLASS_ENROLL = "class:enroll"
    CLASS_EXPORT = "class:export"
    CLASS_STATS = "class:stats"

    LESSON_READ = "lesson:read"
    LESSON_WRITE = "lesson:write"
    LESSON_DELETE = "lesson:delete"

    ATTENDANCE_READ = "attendance:read"
    ATTENDANCE_RECORD = "attendance:record"
    ATTENDANCE_STATS = "attendance:stats"
    ATTENDANCE_EXPORT = "attendance:export"

    PAYMENT_READ = "payment:read"
    PAYMENT_WRITE = "payment:write"
    PAYMENT_STATS = "payment:stats"
    PAYMENT_EXPORT = "payment:export"

    NOTICE_READ = "notice:read"
    NOTICE_CREATE = "notice:create"
    NOTICE_MANAGE = "notice:manage"

    NOTIFICATION_READ = "notification:read"
    NOTIFICATION_SEND = "notification:send"
    NOTIFICATION_DELETE = "notification:delete"
    MESSAGE_SEND = "message:send"

    DASHBOARD_ADMIN = "dashboard:admin"
    DASHBOARD_STUDENT = "dashboard:student"
    DASHBOARD_PARENT = "dashboard:parent"

    USER_MANAGE = "user:manage"


@dataclass(frozen=True)
class PolicyContext:
    """What the policy needs to know about the target of an action."""
    actor_tenant_id: Optional[UUID] = None
    resource_tenant_id: Optional[UUID] = None
    is_urgent: bool = False
    is_pinned: bool = False


TEACHER_ACTIONS: FrozenSet[Action] = frozenset({
    Action.STUDENT_READ,
    Action.TEACHER_READ,
    Action.CLASS_READ,
    Action.CLASS_STATS,
    Action.LESSON_READ,
    Action.LESSON_WRITE,
    Action.ATTENDANCE_READ,
    Action.ATTENDANCE_RECORD,
    Action.ATTENDANCE_STATS,
    Action.NOTICE_READ,
    Action.NOTICE_CREATE,
    Action.NOTIFICATION_READ,
    Action.MESSAGE_SEND,
})

# Read-only on their own records; the tenant scope narrows which rows
LEARNER_ACTIONS: FrozenSet[Action] = frozenset({
    Action.STUDENT_READ,
    Action.CLASS_READ,
    Action.LESSON_READ,
    Action.ATTENDANCE_READ,
    Action.PAYMENT_READ,
    Action.NOTICE_READ,
    Action.NOTIFICATION_READ,
})

ROLE_ACTIONS: Dict[Role, FrozenSet[Action]] = {
    Role.SUPERADMIN: frozenset(Action),
    Role.ADMIN: frozenset(Action),
    Role.TEACHER: TEACHER_ACTIONS,
    Role.STUDENT: LEARNER_ACTIONS | {Action.DASHBOARD_STUDENT},
    Role.PARENT: LEARNER_ACTIONS | {Action.DASHBOARD_PARENT},
}

# Capabilities a permission override can never hand to a non-admin
ADMIN_ONLY_ACTIONS: FrozenSet[Action] = frozenset({
    Action.STUDENT_BULK_DELETE,
    Action.TEACHER_BULK_DELETE,
    Action.STUDENT_EXPORT,
    Action.TEACHER_EXPORT,
    Action.CLASS_EXPORT,
    Action.ATTENDANCE_EXPORT,
    Action.PAYMENT_EXPORT,
    Action.NOTICE_MANAGE,
    Action.USER_MANAGE,
    Action.CLASS_ENROLL,
    Action.DASHBOARD_ADMIN,
})


def can_perform(role: Role, action: Action, context: Optional[PolicyContext] = None) -> bool:
    """Pure allow/deny decision for ``role`` doing ``action``."""
    if role == Role.SUPERADMIN:
        return True

    if action not in ROLE_ACTIONS.get(role, frozenset()):
        return False

    if context is None:
        return True

    if (
        context.resource_tenant_id is not None
        and context.resource_tenant_id != context.actor_tenant_id
    ):
        return False

    if action == Action.NOTICE_CREATE and (context.is_urgent or context.is_pinned):
        return role == Role.ADMIN

    return True


def _override_set(permissions: Optional[Dict[str, Any]], key: str) -> FrozenSet[str]:
    if not isinstance(permissions, dict):
        return frozenset()
    values = permissions.get(key) or []
    return frozenset(str(v) for v in values) if isinstance(values, (list, tuple, set)) else frozenset()


def is_allowed(claims: Claims, action: Action, context: Optional[PolicyContext] = None) -> bool:
    """``can_perform`` plus the membership's permission overrides."""
    if context is not None and context.actor_tenant_id is None:
        context = PolicyContext(
            actor_tenant_id=claims.tenant_id,
            resource_tenant_id=context.resource_tenant_id,
            is_urgent=context.is_urgent,
            is_pinned=context.is_pinned,
        )

    if claims.role == Role.SUPERADMIN:
        return True

    if action.value in _override_set(claims.permissions, "deny"):
        return False

    if can_perform(claims.role, action, context):
        return True

    # Overrides widen role capabilities but never across tenants or into admin carve-outs
    if action in ADMIN_ONLY_ACTIONS or action.value not in _override_set(claims.permissions, "allow"):
        return False
    if context is not None and context.resource_tenant_id not in (None, context.actor_tenant_id):
        return False
    if action == Action.NOTICE_CREATE and context is not None and (context.is_urgent or context.is_pinned):
        return False
    return True


def authorize(claims: Claims, action: Action, context: Optional[PolicyContext] = None) -> None:
    if not is_allowed(claims, action, context):
        raise Forbidden(f"Role {claims.role.value} may not perform {action.value}")
