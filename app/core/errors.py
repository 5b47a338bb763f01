"""
Error types + FastAPI exception handlers.

Every failure leaves the API in one envelope:

    {"error": {"code": ..., "message": ..., "details": ...}, "request_id": ...}

Services raise AppError subclasses. Driver and allocator exceptions that reach
the edge are converted into AppErrors here, so there is a single renderer.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Type

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, DuplicateKeyError
from starlette import status

from app.features.order_id.exceptions import SequenceAllocationError

logger = logging.getLogger(__name__)


class AppError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.code = str(code)
        self.message = str(message)
        self.details = details
        self.headers = headers


class NotFoundError(AppError):
    def __init__(self, *, code: str = "not_found", message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, code=code, message=message, details=details)


class ConflictError(AppError):
    def __init__(self, *, code: str = "conflict", message: str = "Conflict", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_409_CONFLICT, code=code, message=message, details=details)


class BadRequestError(AppError):
    def __init__(self, *, code: str = "bad_request", message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, code=code, message=message, details=details)


class ServiceUnavailableError(AppError):
    def __init__(
        self,
        *,
        code: str = "service_unavailable",
        message: str = "Service temporarily unavailable",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, code=code, message=message, details=details)


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------

def _request_id(request: Request) -> str | None:
    rid = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    if isinstance(rid, str) and rid.strip():
        return rid.strip()
    return None


def render_error(request: Request, err: AppError) -> JSONResponse:
    rid = _request_id(request)

    headers = dict(err.headers or {})
    if rid:
        headers.setdefault("X-Request-ID", rid)

    return JSONResponse(
        status_code=err.status_code,
        content={
            "error": {"code": err.code, "message": err.message, "details": err.details},
            "request_id": rid,
        },
        headers=headers,
    )


# -----------------------------------------------------------------------------
# Conversions for exceptions that are not AppErrors
# -----------------------------------------------------------------------------

def _from_validation(exc: RequestValidationError) -> AppError:
    return AppError(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Request validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )


def _from_http(exc: HTTPException) -> AppError:
    details: dict[str, Any] | None = None
    message = "Request failed"
    if isinstance(exc.detail, str):
        message = exc.detail
    elif isinstance(exc.detail, dict):
        message = str(exc.detail.get("message") or message)
        details = exc.detail

    return AppError(
        status_code=exc.status_code,
        code="http_exception",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


def _from_duplicate_key(exc: DuplicateKeyError) -> AppError:
    logger.info("DuplicateKeyError reached the API: %s", exc.details)
    return ConflictError(code="duplicate_key", message="A record with the same unique key already exists")


def _from_sequence(exc: SequenceAllocationError) -> AppError:
    logger.error("[order_id] submission aborted: %s last_error=%r", exc, exc.last_error)
    return ServiceUnavailableError(
        code="order_id_unavailable",
        message="Could not allocate an order number; retry the submission",
        details={"attempts": exc.attempts},
    )


def _from_connection(exc: ConnectionFailure) -> AppError:
    logger.error("Mongo unavailable: %r", exc)
    return ServiceUnavailableError(code="database_unavailable", message="Database temporarily unavailable")


_CONVERTERS: Dict[Type[Exception], Callable[[Any], AppError]] = {
    RequestValidationError: _from_validation,
    HTTPException: _from_http,
    DuplicateKeyError: _from_duplicate_key,
    SequenceAllocationError: _from_sequence,
    ConnectionFailure: _from_connection,
}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        return render_error(request, exc)

    for exc_type, convert in _CONVERTERS.items():

        async def _handle(request: Request, exc: Exception, _convert=convert) -> JSONResponse:
            return render_error(request, _convert(exc))

        app.add_exception_handler(exc_type, _handle)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception", exc_info=exc)
        return render_error(
            request,
            AppError(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                code="internal_error",
                message="Internal server error",
            ),
        )
