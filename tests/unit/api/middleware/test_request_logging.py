"""Unit tests for RequestLoggingMiddleware.

This module tests that the access-log lines are emitted through contextual
handlers: each line carries the fields of the request context attached when
the middleware runs.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.requests import Request

from flowctx.api.middleware.request_logging import RequestLoggingMiddleware
from flowctx.core.carrier import attach_context
from flowctx.core.config import LogConfig
from flowctx.core.context import RequestContext
from flowctx.core.diagnostics import diagnostic_store

if TYPE_CHECKING:
    from loguru import Record


@pytest.fixture
def request_ctx() -> RequestContext:
    """Return the context the request flow runs with."""
    return RequestContext().set_transaction_id("t1").set_correlator("abc-123")


@pytest.mark.unit
class TestRequestLoggingMiddleware:
    """Test suite for the access-log stage."""

    async def test_logs_start_and_completion_with_context(
        self,
        request_logging_middleware: RequestLoggingMiddleware,
        make_request: Callable[..., Request],
        call_next: MockType,
        request_ctx: RequestContext,
        log_records: list["Record"],
    ) -> None:
        """Test the two access-log lines of a successful request."""
        request = make_request(path="/orders", headers={"user-agent": "pytest/1.0"})

        with attach_context(request_ctx):
            response = await request_logging_middleware.dispatch(request, call_next)

        assert response.status_code == 200
        assert [r["message"] for r in log_records] == [
            "Request started",
            "Request completed",
        ]
        started, completed = log_records
        assert started["extra"]["user_agent"] == "pytest/1.0"
        assert started["extra"]["client_host"] == "127.0.0.1"
        assert completed["extra"]["status_code"] == 200
        assert completed["extra"]["duration_ms"] >= 0
        for record in log_records:
            assert record["extra"]["trans"] == "t1"
            assert record["extra"]["corr"] == "abc-123"
            assert record["extra"]["path"] == "/orders"
        assert diagnostic_store.is_empty()

    async def test_failure_is_logged_and_reraised(
        self,
        request_logging_middleware: RequestLoggingMiddleware,
        make_request: Callable[..., Request],
        request_ctx: RequestContext,
        mocker: MockerFixture,
        log_records: list["Record"],
    ) -> None:
        """Test that a downstream failure is logged then propagated."""
        call_next = mocker.AsyncMock(side_effect=ValueError("bad"))

        with attach_context(request_ctx), pytest.raises(ValueError, match="bad"):
            await request_logging_middleware.dispatch(make_request(), call_next)

        failed = log_records[-1]
        assert failed["message"] == "Request failed"
        assert failed["level"].name == "ERROR"
        assert failed["extra"]["error_type"] == "ValueError"
        assert failed["extra"]["corr"] == "abc-123"

    async def test_excluded_paths_are_not_logged(
        self,
        request_logging_middleware: RequestLoggingMiddleware,
        make_request: Callable[..., Request],
        call_next: MockType,
        log_records: list["Record"],
    ) -> None:
        """Test that health checks pass through silently."""
        response = await request_logging_middleware.dispatch(
            make_request(path="/health"), call_next
        )

        assert response.status_code == 200
        assert log_records == []

    async def test_slow_request_warning(
        self,
        noop_app: object,
        make_request: Callable[..., Request],
        call_next: MockType,
        request_ctx: RequestContext,
        mocker: MockerFixture,
        log_records: list["Record"],
    ) -> None:
        """Test the warning above the configured threshold."""
        middleware = RequestLoggingMiddleware(
            noop_app,  # type: ignore[arg-type]
            log_config=LogConfig(slow_request_threshold_ms=100),
        )
        mock_time = mocker.patch("flowctx.api.middleware.request_logging.time")
        mock_time.perf_counter.side_effect = [10.0, 10.5]

        with attach_context(request_ctx):
            await middleware.dispatch(make_request(), call_next)

        slow = log_records[-1]
        assert slow["message"] == "Slow request detected"
        assert slow["level"].name == "WARNING"
        assert slow["extra"]["duration_ms"] == 500.0
        assert slow["extra"]["threshold_ms"] == 100
        assert slow["extra"]["corr"] == "abc-123"

    async def test_missing_client_and_user_agent(
        self,
        request_logging_middleware: RequestLoggingMiddleware,
        make_request: Callable[..., Request],
        call_next: MockType,
        log_records: list["Record"],
    ) -> None:
        """Test placeholders for absent client details."""
        request = make_request()
        request.scope["client"] = None

        await request_logging_middleware.dispatch(request, call_next)

        started = log_records[0]
        assert started["extra"]["client_host"] == "unknown"
        assert started["extra"]["user_agent"] == "unknown"

    async def test_user_agent_is_truncated(
        self,
        request_logging_middleware: RequestLoggingMiddleware,
        make_request: Callable[..., Request],
        call_next: MockType,
        log_records: list["Record"],
    ) -> None:
        """Test that long user agents are cut to a fixed length."""
        request = make_request(headers={"user-agent": "a" * 500})

        await request_logging_middleware.dispatch(request, call_next)

        assert len(log_records[0]["extra"]["user_agent"]) == 200
