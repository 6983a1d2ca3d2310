import logging
from enum import Enum

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_ARGUMENT = "invalid_argument"
    FAILED_PRECONDITION = "failed_precondition"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    INTERNAL = "internal"


ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_ARGUMENT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.FAILED_PRECONDITION: status.HTTP_412_PRECONDITION_FAILED,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.RESOURCE_EXHAUSTED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Base class for every error surfaced to API callers.

    Each subclass pins one ``ErrorKind``; the message is human readable and
    returned verbatim.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        return ERROR_STATUS_CODES[self.kind]


class UnauthenticatedError(ServiceError):
    kind = ErrorKind.UNAUTHENTICATED


class InvalidArgumentError(ServiceError):
    kind = ErrorKind.INVALID_ARGUMENT


class FailedPreconditionError(ServiceError):
    kind = ErrorKind.FAILED_PRECONDITION


class PermissionDeniedError(ServiceError):
    kind = ErrorKind.PERMISSION_DENIED


class NotFoundError(ServiceError):
    kind = ErrorKind.NOT_FOUND


class ResourceExhaustedError(ServiceError):
    kind = ErrorKind.RESOURCE_EXHAUSTED


class InternalError(ServiceError):
    kind = ErrorKind.INTERNAL


def error_payload(kind: ErrorKind, message: str) -> dict[str, str]:
    return {"kind": kind.value, "detail": message}


async def _service_error_handler(_: Request, exc: ServiceError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.UNAUTHENTICATED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.kind, exc.message),
        headers=headers,
    )


async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[ErrorKind.INVALID_ARGUMENT],
        content=error_payload(ErrorKind.INVALID_ARGUMENT, message),
    )


async def _storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure while handling %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=ERROR_STATUS_CODES[ErrorKind.INTERNAL],
        content=error_payload(ErrorKind.INTERNAL, "Unexpected storage failure"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, _storage_error_handler)
