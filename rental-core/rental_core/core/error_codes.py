"""Stable error codes surfaced to API clients."""

from typing import Final


class ErrorCode:
    VALIDATION_ERROR: Final = "VALIDATION_ERROR"
    REFERENCE_ERROR: Final = "REFERENCE_ERROR"
    DUPLICATE: Final = "DUPLICATE"
    RESERVATION_CONFLICT: Final = "RESERVATION_CONFLICT"
    INVALID_STATUS_TRANSITION: Final = "INVALID_STATUS_TRANSITION"
    NOT_FOUND: Final = "NOT_FOUND"
    CASCADE_FAILURE: Final = "CASCADE_FAILURE"
    FORBIDDEN: Final = "FORBIDDEN"
    TIMEOUT: Final = "TIMEOUT"
