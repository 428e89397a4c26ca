"""Error taxonomy shared by services and routers, plus the FastAPI handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors that map to a client-visible status."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    status_code = 400
    code = "validation"


class OtpMismatchError(AppError):
    status_code = 400
    code = "mismatch"


class OtpExpiredError(AppError):
    status_code = 400
    code = "expired"


class UnauthorizedError(AppError):
    status_code = 401
    code = "unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class InternalError(AppError):
    pass


class StoreError(InternalError):
    """Unexpected persistence failure (already logged where it was raised)."""


class NotifierError(InternalError):
    """Unexpected failure inside the notification adapter."""


def _failure(status_code: int, message: str, code: str, details: Any = None) -> JSONResponse:
    body: dict[str, Any] = {"ok": False, "error": message, "code": code}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status_code)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if isinstance(exc, InternalError):
            # never echo internal detail back to the client
            return _failure(exc.status_code, "An unexpected error occurred", exc.code)
        return _failure(exc.status_code, exc.message, exc.code, exc.details)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in err.get("loc", ())[1:]) for err in exc.errors()]
        return _failure(400, "Invalid request body", "validation", {"fields": fields})

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _failure(500, "An unexpected error occurred", "internal")
