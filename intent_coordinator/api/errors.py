"""Canonical HTTP error payloads.

Every error response has the shape `{"error": <message>, "code": <CODE>}` with optional `details`.
Framework errors, stack traces and filesystem paths never reach the caller.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from intent_coordinator.intent.errors import IntentError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An HTTP error with a caller-safe message."""

    def __init__(
            self,
            status_code: int,
            error: str,
            code: str,
            details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.code = code
        self.details = details


def http_error(error: str, code: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    if details:
        return {"error": error, "code": code, "details": details}
    return {"error": error, "code": code}


def error_response(
        status_code: int,
        error: str,
        code: str,
        details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=http_error(error, code, details))


def intent_error_response(exc: IntentError) -> JSONResponse:
    """Map a pipeline error to its public payload (details are never included)."""

    return error_response(exc.status_code, exc.safe_message, exc.code.value)


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers that keep every error response in the canonical shape."""

    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return error_response(exc.status_code, exc.error, exc.code, exc.details)

    @app.exception_handler(IntentError)
    async def _intent_error(_request: Request, exc: IntentError) -> JSONResponse:
        return intent_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, _exc: RequestValidationError) -> JSONResponse:
        return error_response(400, "Bad request.", "BAD_REQUEST")

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return error_response(404, "Not found.", "NOT_FOUND", {"path": request.url.path})
        if 400 <= exc.status_code < 500:
            return error_response(exc.status_code, "Bad request.", "BAD_REQUEST")
        return error_response(500, "Internal server error.", "INTERNAL_SERVER_ERROR")

    @app.exception_handler(Exception)
    async def _unhandled(_request: Request, _exc: Exception) -> JSONResponse:
        logger.exception("unhandled error")
        return error_response(500, "Internal server error.", "INTERNAL_SERVER_ERROR")
