from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from medibook.config import settings
from medibook.core.logging import logger


class AppException(HTTPException):
    """HTTP exception carrying a machine readable error code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        code: str,
        details: Optional[Any] = None,
        headers: Optional[dict] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code
        self.details = details


class CredentialsException(AppException):
    """Exception for invalid credentials."""

    def __init__(self, detail: str = "Could not validate credentials", code: str = "unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            code=code,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(AppException):
    """Exception for resource not found."""

    def __init__(self, detail: str = "Resource not found", code: str = "not-found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            code=code,
        )


class BadRequestException(AppException):
    """Exception for bad request."""

    def __init__(self, detail: str = "Bad request", code: str = "bad-request", details: Optional[Any] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            code=code,
            details=details,
        )


class ConflictException(AppException):
    """Exception for resource conflict."""

    def __init__(self, detail: str = "Resource already exists", code: str = "conflict", details: Optional[Any] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            code=code,
            details=details,
        )


class ForbiddenException(AppException):
    """Exception for forbidden access."""

    def __init__(self, detail: str = "Forbidden", code: str = "forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            code=code,
        )


def duplicate_key_conflict(error: DuplicateKeyError, detail: str = "Resource already exists") -> ConflictException:
    """Translate a store uniqueness violation into the API conflict shape."""
    key_value = (error.details or {}).get("keyValue") or {}
    fields = list(key_value.keys())
    return ConflictException(detail, code="duplicate-key", details={"fields": fields} if fields else None)


def error_body(message: str, code: str, details: Optional[Any] = None) -> dict:
    error = {"code": code}
    if details is not None:
        error["details"] = details
    return {"success": False, "message": message, "error": error}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, exc.code, exc.details),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc, AppException):
        return await app_exception_handler(request, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), f"http-{exc.status_code}"),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report every failing field instead of only the first one."""
    fields = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part != "body"]
        fields.append({"field": ".".join(location), "message": err.get("msg", "Invalid value")})

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation failed", "validation-error", fields),
    )


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    logger.warning(f"Duplicate key on {request.method} {request.url.path}: {exc.details}")
    conflict = duplicate_key_conflict(exc)
    return await app_exception_handler(request, conflict)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")

    details = None
    if settings.is_development:
        details = {"type": type(exc).__name__, "message": str(exc)}

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error", "internal-error", details),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {success: false, message, error}."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
