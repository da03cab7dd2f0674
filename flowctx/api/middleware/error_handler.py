"""Error mapping for the FastAPI application.

This module is the single place where failures become HTTP responses:

- **ErrorMappingMiddleware**: Catches anything raised downstream and answers
  with the status and body of the matching taxonomy error
- **Framework normalizers**: Exception handlers that turn Starlette
  ``HTTPException`` and FastAPI ``RequestValidationError`` into taxonomy
  errors and re-raise them, so they reach the middleware like any other
  failure

Server and dependency faults, recognized or not, are answered with a fixed
message; their type, message and details only go to the log.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from flowctx.api.schemas.errors import ErrorResponse
from flowctx.api.utils.responses import ORJSONResponse
from flowctx.core.constants import REDACTED_INTERNAL_MESSAGE
from flowctx.core.exceptions import (
    InternalError,
    ServiceError,
    UnprocessableEntityError,
    error_for_status,
)
from flowctx.core.signals import Signal, emit, on_error


def to_service_error(exc: Exception) -> ServiceError:
    """Resolve any exception to its taxonomy error.

    Args:
        exc: The failure that reached the boundary.

    Returns:
        ServiceError: ``exc`` itself when it belongs to the taxonomy, otherwise
            an ``InternalError`` with a redacted message caused by ``exc``.
    """
    if isinstance(exc, ServiceError):
        return exc
    return InternalError(REDACTED_INTERNAL_MESSAGE, cause=exc)


def _log_failure(request: Request, error: ServiceError, exc: BaseException) -> None:
    fields: dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "status_code": error.status_code,
        "error_code": error.code,
        "error_category": error.category.value,
        "fingerprint": error.fingerprint,
    }

    if error is not exc:
        logger.opt(exception=exc).error(
            "Unhandled exception: {}", type(exc).__name__, **fields
        )
    else:
        level = "ERROR" if error.should_alert else "WARNING"
        logger.log(
            level, "Handling {}: {}", type(error).__name__, error.message, **fields
        )


def error_response(request: Request, exc: Exception) -> Response:
    """Log a failure with the request's context and build its response.

    Args:
        request: The request whose processing failed.
        exc: The failure.

    Returns:
        Response: ORJSONResponse with the taxonomy status and error body.
    """
    error = to_service_error(exc)

    emit(Signal.fail(exc), on_error(lambda e: _log_failure(request, error, e)))

    return ORJSONResponse(
        status_code=error.status_code,
        content=ErrorResponse(**error.to_body()),
    )


class ErrorMappingMiddleware:
    """ASGI middleware converting downstream failures into error responses.

    Implemented as plain ASGI so that the caught exception is fully handled
    here and the response is sent in the same task as the request.

    Args:
        app: The ASGI application.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            # Too late to answer with an error body
            if response_started:
                raise
            response = error_response(Request(scope), exc)
            await response(scope, receive, send)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Normalize Starlette HTTPException into the taxonomy.

    Args:
        request: The request that raised the exception.
        exc: The HTTPException to normalize.

    Raises:
        TypeError: If exc is not an HTTPException instance.
        ServiceError: Always, the taxonomy error matching the status code.
    """
    _ = request
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    raise error_for_status(exc.status_code, str(exc.detail), cause=exc) from exc


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Normalize FastAPI request validation failures into the taxonomy.

    Args:
        request: The request that failed validation.
        exc: The RequestValidationError to normalize.

    Raises:
        TypeError: If exc is not a RequestValidationError instance.
        UnprocessableEntityError: Always, with the failure list as details.
    """
    _ = request
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    validation_errors = []
    for error in exc.errors():
        # ('body', 'email') -> 'email'
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:] if loc != "__root__")
        validation_errors.append(
            {"field": field_name or "root", "msg": error.get("msg", "Invalid value")}
        )

    raise UnprocessableEntityError(
        "Request validation failed",
        details={"validation_errors": validation_errors},
        cause=exc,
    ) from exc


def register_exception_handlers(app: FastAPI) -> None:
    """Register the framework exception normalizers.

    Args:
        app: The FastAPI application instance.
    """
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
