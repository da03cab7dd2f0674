"""HTTP access logging driven by flow lifecycle signals.

This module implements the access-log stage of the middleware chain. Each
log statement runs inside a contextual handler, so every line carries the
request's transaction id, correlator and other context fields without the
middleware passing them around.

Logged events:
- **Request started**: method, path, client host and user agent
- **Request completed**: status code and duration
- **Request failed**: error type and duration; the failure is re-raised for
  the error-mapping stage
- **Slow request detected**: duration above the configured threshold

Requests to excluded paths (health checks by default) are passed through
without logging.
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from flowctx.api.constants import USER_AGENT_MAX_LENGTH
from flowctx.core.config import LogConfig
from flowctx.core.constants import MILLISECONDS_PER_SECOND
from flowctx.core.signals import Signal, emit, observe, on_error, on_value


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
    """

    def __init__(self, app: ASGIApp, *, log_config: LogConfig) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)

    def _get_client_ip(self, request: Request) -> str:
        if request.client:
            return request.client.host
        return "unknown"

    def _get_user_agent(self, request: Request) -> str:
        ua = request.headers.get("user-agent", "")
        return ua[:USER_AGENT_MAX_LENGTH] if ua else "unknown"

    def _log_started(self, request: Request) -> None:
        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client_host=self._get_client_ip(request),
            user_agent=self._get_user_agent(request),
        )

    def _log_completed(
        self, request: Request, response: Response, start_time: float
    ) -> None:
        duration_ms = round(
            (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND, 2
        )
        logger.info(
            "Request completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        if duration_ms > self.log_config.slow_request_threshold_ms:
            logger.warning(
                "Slow request detected",
                duration_ms=duration_ms,
                threshold_ms=self.log_config.slow_request_threshold_ms,
            )

    def _log_failed(
        self, request: Request, exc: BaseException, start_time: float
    ) -> None:
        duration_ms = round(
            (time.perf_counter() - start_time) * MILLISECONDS_PER_SECOND, 2
        )
        logger.error(
            "Request failed",
            method=request.method,
            path=request.url.path,
            duration_ms=duration_ms,
            error_type=type(exc).__name__,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process the request and log its lifecycle.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The response from the application.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        emit(Signal.next(request), on_value(self._log_started))

        start_time = time.perf_counter()
        return await observe(
            call_next(request),
            on_value(
                lambda response: self._log_completed(request, response, start_time)
            ),
            on_error(lambda exc: self._log_failed(request, exc, start_time)),
        )
