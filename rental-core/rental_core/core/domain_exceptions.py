"""Domain exception hierarchy.

Every error the core raises on purpose derives from ``DomainException`` and
carries a stable ``code`` plus a human readable ``message``. The HTTP layer
maps each subclass to a status code; nothing here knows about transport.
"""

from rental_core.core.error_codes import ErrorCode


class DomainException(Exception):
    code: str = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(DomainException):
    """Malformed or out-of-range input."""

    code = ErrorCode.VALIDATION_ERROR


class InvalidReferenceError(DomainException):
    """A foreign key does not resolve to a live record."""

    code = ErrorCode.REFERENCE_ERROR

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"Invalid reference: {field}")
        self.field = field

    def to_dict(self) -> dict:
        return {**super().to_dict(), "field": self.field}


class DuplicateError(DomainException):
    """A uniqueness scope already holds the normalized value."""

    code = ErrorCode.DUPLICATE

    def __init__(self, scope: str, message: str | None = None):
        super().__init__(message or f"Duplicate value for {scope}")
        self.scope = scope

    def to_dict(self) -> dict:
        return {**super().to_dict(), "scope": self.scope}


class ConflictError(DomainException):
    code = ErrorCode.RESERVATION_CONFLICT


class StateTransitionError(DomainException):
    code = ErrorCode.INVALID_STATUS_TRANSITION


class NotFoundError(DomainException):
    code = ErrorCode.NOT_FOUND


class PermissionDeniedError(DomainException):
    code = ErrorCode.FORBIDDEN


class CascadeFailure(DomainException):
    """A cascade stopped part way.

    Levels listed in ``deleted`` are already committed; ``level`` is the one
    that failed. Re-running the same cascade finishes the job.
    """

    code = ErrorCode.CASCADE_FAILURE

    def __init__(self, level: str, deleted: dict[str, int], cause: BaseException | None = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Cascade delete failed at level '{level}'{detail}")
        self.level = level
        self.deleted = dict(deleted)
        self.cause = cause

    def to_dict(self) -> dict:
        return {**super().to_dict(), "level": self.level, "deleted": self.deleted}
