"""
Error taxonomy and JSON error envelope.

Every failure the API reports is a ``ConnectryError`` subclass. Handlers
render them as ``{"error": {"code", "message", "status", ...}}``, the same
envelope the CSRF middleware uses, after logging a diagnostic.
"""

from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

log = structlog.get_logger()


class ConnectryError(Exception):
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    default_message: str = "Something went wrong. Please try again later."

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "status": self.status_code,
        }
        body.update({k: v for k, v in self.extra.items() if v is not None})
        return body


class AuthRequired(ConnectryError):
    status_code = 401
    code = "AUTH_REQUIRED"
    default_message = "Please sign in to continue."

    def __init__(self, next_path: Optional[str] = None, message: Optional[str] = None):
        login_url = "/auth/login"
        if next_path:
            login_url = f"{login_url}?next={quote(next_path, safe='/')}"
        super().__init__(message, login_url=login_url)


class InvalidCredentials(ConnectryError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password."


class PermissionDenied(ConnectryError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You do not have permission to view this page."


class NotFound(ConnectryError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found. It may have been deleted."


class Conflict(ConnectryError):
    status_code = 409
    code = "CONFLICT"
    default_message = "This action is not available right now."


class ValidationFailed(ConnectryError):
    """A required form field was blank; the submitted values come back in ``form``."""

    status_code = 422
    code = "VALIDATION_FAILED"
    default_message = "Please fill in the required fields."

    def __init__(self, message: Optional[str] = None, *, form: Optional[dict] = None):
        super().__init__(message, form=form)


class BackendError(ConnectryError):
    status_code = 503
    code = "BACKEND_UNAVAILABLE"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        table: Optional[str] = None,
        operation: Optional[str] = None,
        form: Optional[dict] = None,
    ):
        self.table = table
        self.operation = operation
        super().__init__(message, form=form)


class BackendReadError(BackendError):
    code = "BACKEND_READ_FAILED"
    default_message = "Could not load data. Please reload the page."


class BackendWriteError(BackendError):
    code = "BACKEND_WRITE_FAILED"
    default_message = "Could not save your changes. Please try again in a moment."

    def __init__(
        self, message: Optional[str] = None, *, constraint_violation: bool = False, **kwargs: Any
    ):
        # True when the database refused the row (unique, check or foreign key).
        self.constraint_violation = constraint_violation
        super().__init__(message, **kwargs)


def error_response(status: int, code: str, message: str, **extra: Any) -> JSONResponse:
    body = {"code": code, "message": message, "status": status}
    body.update(extra)
    return JSONResponse(status_code=status, content={"error": body})


async def connectry_error_handler(request: Request, exc: ConnectryError) -> JSONResponse:
    event = "request.failed" if exc.status_code >= 500 else "request.rejected"
    log.warning(
        event,
        path=request.url.path,
        method=request.method,
        code=exc.code,
        status=exc.status_code,
        table=getattr(exc, "table", None),
        operation=getattr(exc, "operation", None),
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    log.info("request.invalid", path=request.url.path, errors=len(exc.errors()))
    return error_response(
        422,
        "VALIDATION_FAILED",
        ValidationFailed.default_message,
        details=[
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ],
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConnectryError, connectry_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
