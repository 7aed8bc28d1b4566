"""
Application error types and the FastAPI handlers that render them
into the `{success, data, error}` envelope.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors reported to API callers with a stable shape."""

    status_code: int = 500
    code: Optional[str] = None

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"


class GoalLinkError(AppError):
    """
    A goal-linking business rule was violated.

    The status is derived from the code: missing goals are 404, everything else 400.
    """

    NOT_FOUND_CODES = {"GOAL_NOT_FOUND", "PARENT_NOT_FOUND"}

    def __init__(self, code: str, message: str):
        status_code = 404 if code in self.NOT_FOUND_CODES else 400
        super().__init__(message, status_code=status_code, code=code)


class RateLimitedError(AppError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str = "AI service is busy. Please try again in a moment."):
        super().__init__(message)


class AIServiceError(AppError):
    status_code = 500
    code = "AI_ERROR"

    def __init__(self, message: str = "Failed to generate AI analysis. Please try again later."):
        super().__init__(message)


def error_body(message: str, status_code: int, code: Optional[str] = None, details: Any = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message, "status": status_code}
    if code:
        error["code"] = code
    if details is not None:
        error["details"] = details
    return {"success": False, "data": None, "error": error}


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    fields = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        fields.append({"field": ".".join(loc) or "request", "message": err.get("msg", "Invalid value")})
    return fields


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.status_code, exc.code, exc.details),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = "UNAUTHORIZED" if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), exc.status_code, code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body("Validation failed", 400, ValidationError.code, _field_errors(exc)),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content=error_body("Internal server error", 500))


def register_exception_handlers(app: FastAPI) -> None:
    """Attaches the envelope-rendering handlers to the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
