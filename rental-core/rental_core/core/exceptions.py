import asyncio
import logging

from fastapi import Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse

from rental_core.core.domain_exceptions import (
    CascadeFailure,
    ConflictError,
    DomainException,
    DuplicateError,
    InvalidReferenceError,
    NotFoundError,
    PermissionDeniedError,
    StateTransitionError,
    ValidationError,
)
from rental_core.core.error_codes import ErrorCode
from rental_core.schemas.common import APIError, APIResponse

logger = logging.getLogger(__name__)

STATUS_BY_EXCEPTION: tuple[tuple[type[DomainException], int], ...] = (
    (ValidationError, 400),
    (InvalidReferenceError, 400),
    (DuplicateError, 409),
    (ConflictError, 409),
    (StateTransitionError, 409),
    (NotFoundError, 404),
    (PermissionDeniedError, 403),
    (CascadeFailure, 500),
)


def _status_for(exc: DomainException) -> int:
    for exc_type, status_code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def _error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse(
            success=False,
            error=APIError(code=code, message=message, details=details),
        ).model_dump(),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    return _error_response(exc.status_code, ErrorCode.VALIDATION_ERROR, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return _error_response(422, ErrorCode.VALIDATION_ERROR, message)


async def domain_exception_handler(request: Request, exc: DomainException):
    details = {key: value for key, value in exc.to_dict().items() if key not in ("code", "message")}
    return _error_response(_status_for(exc), exc.code, exc.message, details or None)


async def timeout_handler(request: Request, exc: asyncio.TimeoutError):
    logger.warning("Request timed out: %s %s", request.method, request.url.path)
    return _error_response(504, ErrorCode.TIMEOUT, "Storage operation timed out")
