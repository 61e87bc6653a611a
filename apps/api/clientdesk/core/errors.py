from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, NoResultFound
from starlette.exceptions import HTTPException as StarletteHTTPException

from clientdesk.core.config import get_settings


logger = logging.getLogger("clientdesk.errors")


class AppError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


def error_response(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error or message},
    )


def _describe_integrity_error(exc: IntegrityError) -> str:
    text = str(exc.orig).lower() if exc.orig is not None else str(exc).lower()
    if "foreign key" in text:
        return "Referenced record does not exist"
    if "unique" in text or "duplicate" in text:
        return "A record with this value already exists"
    return "Database constraint violated"


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in {"body", "query", "path"}]
        field = ".".join(location) or "request"
        parts.append(f"{field}: {item.get('msg', 'invalid value')}")
    return "; ".join(parts)


async def _app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    logger.info(
        "request.rejected",
        extra={"method": request.method, "path": request.url.path, "status_code": exc.status_code, "error": exc.message},
    )
    return error_response(exc.status_code, exc.message)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = _format_validation_errors(exc)
    logger.info(
        "request.invalid",
        extra={"method": request.method, "path": request.url.path, "status_code": 422, "error": detail},
    )
    return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", detail)


async def _integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    message = _describe_integrity_error(exc)
    logger.warning(
        "db.integrity_error",
        extra={"method": request.method, "path": request.url.path, "status_code": 400, "error": str(exc)},
    )
    return error_response(status.HTTP_400_BAD_REQUEST, message)


async def _no_result_handler(request: Request, exc: NoResultFound) -> JSONResponse:
    return error_response(status.HTTP_404_NOT_FOUND, "Record not found")


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return error_response(exc.status_code, f"Route {request.method} {request.url.path} not found")
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request.failed",
        exc_info=exc,
        extra={"method": request.method, "path": request.url.path, "status_code": 500, "error": str(exc)},
    )
    settings = get_settings()
    message = str(exc) if settings.app_debug and settings.is_development else "Internal server error"
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NoResultFound, _no_result_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
