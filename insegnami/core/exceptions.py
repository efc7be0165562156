# insegnami/core/exceptions.py
"""Custom exceptions for the InsegnaMi application."""
from typing import Any, Dict, List, Optional


class InsegnamiException(Exception):
    """Base exception for InsegnaMi application."""
    status_code = 500
    reason = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        **extra: Any
    ):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if reason is not None:
            self.reason = reason
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "reason": self.reason}
        body.update(self.extra)
        return body


class Unauthenticated(InsegnamiException):
    """No session, or the session could not be verified."""
    status_code = 401
    reason = "unauthenticated"

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Forbidden(InsegnamiException):
    """The caller's role lacks the capability."""
    status_code = 403
    reason = "forbidden"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class NotFound(InsegnamiException):
    """Resource absent or outside the caller's tenant scope."""
    status_code = 404
    reason = "not_found"

    def __init__(self, resource: str, id: Any = None, **extra: Any):
        message = f"{resource} not found"
        if id is not None:
            message += f" with id: {id}"
        super().__init__(message, **extra)


class ValidationFailed(InsegnamiException):
    """Exception raised for validation errors."""
    status_code = 400
    reason = "validation_error"

    def __init__(self, message: str = "Validation failed", details: Optional[List[Any]] = None):
        super().__init__(message, details=details or [])


class DomainRuleViolation(InsegnamiException):
    """Base for domain-invariant failures, reported as 400 with a reason."""
    status_code = 400


class CapacityExceeded(DomainRuleViolation):
    reason = "capacity_exceeded"

    def __init__(self, available_capacity: int, requested: int):
        super().__init__(
            f"Not enough capacity. Available: {available_capacity}, requested: {requested}",
            availableCapacity=available_capacity,
            requestedEnrollments=requested,
        )


class AlreadyEnrolled(DomainRuleViolation):
    reason = "already_enrolled"

    def __init__(self, message: str = "All students are already enrolled in this class"):
        super().__init__(message)


class NothingToUnenroll(DomainRuleViolation):
    reason = "nothing_to_unenroll"

    def __init__(self, message: str = "None of the given students is enrolled in this class"):
        super().__init__(message)


class DuplicateAction(DomainRuleViolation):
    reason = "duplicate_action"


class InvalidTransition(DomainRuleViolation):
    reason = "invalid_transition"

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"{entity} cannot move from {current} to {target}",
            currentStatus=current,
            targetStatus=target,
        )


class Conflict(InsegnamiException):
    """Exception raised when a unique business key already exists."""
    status_code = 409
    reason = "conflict"


class Internal(InsegnamiException):
    """Unexpected failure; details stay in the server log."""
    status_code = 500
    reason = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
