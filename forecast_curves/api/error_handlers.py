# This file defines the shared API error payload and its exception handlers.
# Every failure answers with {error_code, message, details, request_id, timestamp}.
# Curve-engine exceptions are mapped here so routers can let them propagate.

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from forecast_curves.curves.pivot import PivotError
from forecast_curves.ingestion.upload_checks import UploadValidationError

LOGGER = logging.getLogger("api")


class APIError(Exception):
    """Domain error type with structured API details."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        details: Any | None = None,
    ) -> None:
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(message)


def not_found(kind: str, identifier: int) -> APIError:
    return APIError(
        status_code=404,
        error_code=f"{kind.upper()}_NOT_FOUND",
        message=f"Curve {kind} not found: {identifier}",
    )


def _request_id(request: Request) -> str:
    return str(getattr(request.state, "request_id", "unknown"))


def _error_response(
    *, request: Request, status_code: int, error_code: str, message: str, details: Any | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": _request_id(request),
            "timestamp": datetime.now(tz=UTC).isoformat(),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        return _error_response(
            request=request,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(UploadValidationError)
    async def upload_validation_handler(request: Request, exc: UploadValidationError) -> JSONResponse:
        return _error_response(
            request=request,
            status_code=422,
            error_code="UPLOAD_VALIDATION_FAILED",
            message=str(exc),
            details=exc.to_details(),
        )

    @app.exception_handler(PivotError)
    async def pivot_error_handler(request: Request, exc: PivotError) -> JSONResponse:
        return _error_response(
            request=request,
            status_code=400,
            error_code="INVALID_CURVE_DATA",
            message=str(exc),
            details={"duplicate_keys": exc.duplicate_keys} if exc.duplicate_keys else None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(
            request=request,
            status_code=422,
            error_code="VALIDATION_ERROR",
            message="Invalid request parameters.",
            details=exc.errors(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _error_response(
            request=request,
            status_code=exc.status_code,
            error_code="HTTP_ERROR",
            message=str(exc.detail),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return _error_response(
            request=request,
            status_code=500,
            error_code="INTERNAL_SERVER_ERROR",
            message="The server encountered an unexpected error.",
        )
