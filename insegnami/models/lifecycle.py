# insegnami/models/lifecycle.py
"""Allowed status transitions per entity.

States with no outgoing edges are terminal. Same-state moves are rejected
as duplicate actions so callers can tell "already there" from "not allowed".
"""
import enum
from typing import Dict, FrozenSet, Type

from ..core.exceptions import DuplicateAction, InvalidTransition
from .shared.user import UserStatus
from .tenant_specific.student import StudentStatus
from .tenant_specific.teacher import TeacherStatus
from .tenant_specific.enrollment import EnrollmentStatus
from .tenant_specific.lesson import LessonStatus
from .tenant_specific.payment import PaymentStatus
from .tenant_specific.notification import NotificationStatus

TRANSITIONS: Dict[Type[enum.Enum], Dict[enum.Enum, FrozenSet[enum.Enum]]] = {
    UserStatus: {
        UserStatus.PENDING: frozenset({UserStatus.ACTIVE}),
        UserStatus.ACTIVE: frozenset({UserStatus.SUSPENDED, UserStatus.INACTIVE}),
        UserStatus.SUSPENDED: frozenset({UserStatus.ACTIVE, UserStatus.INACTIVE}),
        UserStatus.INACTIVE: frozenset({UserStatus.ACTIVE}),
    },
    StudentStatus: {
        StudentStatus.ACTIVE: frozenset({StudentStatus.INACTIVE, StudentStatus.GRADUATED, StudentStatus.TRANSFERRED}),
        StudentStatus.INACTIVE: frozenset({StudentStatus.ACTIVE}),
        StudentStatus.GRADUATED: frozenset(),
        StudentStatus.TRANSFERRED: frozenset(),
    },
    TeacherStatus: {
        TeacherStatus.ACTIVE: frozenset({TeacherStatus.INACTIVE}),
        TeacherStatus.INACTIVE: frozenset({TeacherStatus.ACTIVE}),
    },
    EnrollmentStatus: {
        EnrollmentStatus.ACTIVE: frozenset({EnrollmentStatus.DROPPED}),
        EnrollmentStatus.DROPPED: frozenset({EnrollmentStatus.ACTIVE}),
    },
    LessonStatus: {
        LessonStatus.SCHEDULED: frozenset({LessonStatus.COMPLETED, LessonStatus.CANCELLED}),
        LessonStatus.COMPLETED: frozenset(),
        LessonStatus.CANCELLED: frozenset(),
    },
    PaymentStatus: {
        PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.OVERDUE, PaymentStatus.CANCELLED}),
        PaymentStatus.OVERDUE: frozenset({PaymentStatus.PAID, PaymentStatus.CANCELLED}),
        PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
        PaymentStatus.CANCELLED: frozenset(),
        PaymentStatus.REFUNDED: frozenset(),
    },
    NotificationStatus: {
        NotificationStatus.UNREAD: frozenset({NotificationStatus.READ, NotificationStatus.DISMISSED}),
        NotificationStatus.READ: frozenset({NotificationStatus.UNREAD, NotificationStatus.DISMISSED}),
        NotificationStatus.DISMISSED: frozenset(),
    },
}


def can_transition(current: enum.Enum, target: enum.Enum) -> bool:
    return target in TRANSITIONS[type(current)].get(current, frozenset())


def is_terminal(state: enum.Enum) -> bool:
    return not TRANSITIONS[type(state)].get(state)


def ensure_transition(entity: str, current: enum.Enum, target: enum.Enum) -> None:
    """Raise unless ``current -> target`` is an allowed move."""
    if current == target:
        raise DuplicateAction(f"{entity} is already {current.value}")
    if not can_transition(current, target):
        raise InvalidTransition(entity, current.value, target.value)
