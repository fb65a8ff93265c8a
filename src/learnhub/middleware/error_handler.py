"""Global error handlers: every failure becomes the same JSON envelope.

    {"success": false, "error": "<message>", "errors": [...], "stack": "..."}

``errors`` is present for field-level validation failures only. ``stack`` is
present for unexpected server errors outside production only.
"""

from __future__ import annotations

import traceback
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub.config import Settings
from learnhub.errors import AppError, InternalError, field_error
from learnhub.middleware.cors import EXPOSED_HEADERS
from learnhub.middleware.request_id import REQUEST_ID_HEADER, resolve_request_id

logger = structlog.get_logger()

_VALUE_ERROR_PREFIX = "Value error, "


def error_envelope(
    status_code: int,
    message: str,
    errors: list[dict[str, Any]] | None = None,
    stack: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "error": message}
    if errors:
        content["errors"] = errors
    if stack:
        content["stack"] = stack
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into ``{field, message}`` pairs without the offending input."""
    items = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith(_VALUE_ERROR_PREFIX):
            message = message[len(_VALUE_ERROR_PREFIX):]
        items.append(field_error(".".join(loc) or "body", message))
    return items


def server_error_headers(request: Request, settings: Settings) -> dict[str, str]:
    """Headers the request id and CORS layers would have added.

    Unhandled exceptions are answered by the outermost server error layer, so
    the response never passes back through those middlewares.
    """
    request_id = getattr(request.state, "request_id", None) or resolve_request_id(
        request.headers.get(REQUEST_ID_HEADER)
    )
    headers = {REQUEST_ID_HEADER: request_id}
    origin = request.headers.get("origin")
    if origin and ("*" in settings.cors_origins or origin in settings.cors_origins):
        headers["Access-Control-Allow-Origin"] = "*" if "*" in settings.cors_origins else origin
        headers["Access-Control-Expose-Headers"] = ", ".join(EXPOSED_HEADERS)
        headers["Vary"] = "Origin"
    return headers


def setup_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Register global exception handlers."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """Domain errors carry their own status and a client-safe message."""
        if isinstance(exc, InternalError):
            logger.error("internal_error", path=request.url.path, error=exc.message)
            return error_envelope(500, "Internal server error")
        if exc.status_code >= 500:
            logger.error("app_error", path=request.url.path, status=exc.status_code, error=exc.message)
        return error_envelope(exc.status_code, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Request shape errors are a 400 with a field list."""
        return error_envelope(400, "Input validation failed", validation_field_errors(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle routing-level HTTP exceptions (404, 405) with the same envelope."""
        return error_envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions. Always JSON; no internals in production."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        stack = None
        if not settings.is_production:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return error_envelope(
            500,
            "Internal server error",
            stack=stack,
            headers=server_error_headers(request, settings),
        )
