"""Fixtures for API middleware tests."""

from collections.abc import Callable

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from flowctx.api.middleware.request_context import RequestContextMiddleware
from flowctx.api.middleware.request_logging import RequestLoggingMiddleware
from flowctx.core.config import ContextConfig, LogConfig


async def _noop_app(scope: Scope, receive: Receive, send: Send) -> None:
    """ASGI app placeholder for middleware constructed in isolation."""


@pytest.fixture
def noop_app() -> ASGIApp:
    """Return an ASGI app that does nothing."""
    return _noop_app


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build Starlette requests from a minimal HTTP scope.

    Returns:
        Callable[..., Request]: Factory taking path, method and headers.
    """

    def factory(
        path: str = "/api/test",
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> Request:
        raw_headers = [
            (k.lower().encode("latin-1"), v.encode("latin-1"))
            for k, v in (headers or {}).items()
        ]
        scope: Scope = {
            "type": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "query_string": b"",
            "headers": raw_headers,
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
            "scheme": "http",
            "root_path": "",
        }
        return Request(scope)

    return factory


@pytest.fixture
def ok_response() -> Response:
    """Return a plain 200 response."""
    return Response("ok", status_code=200)


@pytest.fixture
def call_next(mocker: MockerFixture, ok_response: Response) -> MockType:
    """Return a call_next stub answering with ``ok_response``."""
    return mocker.AsyncMock(return_value=ok_response)


@pytest.fixture
def request_context_middleware(noop_app: ASGIApp) -> RequestContextMiddleware:
    """Create RequestContextMiddleware with static context fields."""
    return RequestContextMiddleware(
        noop_app,
        context_config=ContextConfig(service="orders", component="orders-api"),
    )


@pytest.fixture
def request_logging_middleware(noop_app: ASGIApp) -> RequestLoggingMiddleware:
    """Create RequestLoggingMiddleware with default log configuration."""
    return RequestLoggingMiddleware(noop_app, log_config=LogConfig())
