"""Unit tests for RequestContextMiddleware.

This module tests how the first stage of the chain builds the request
context, attaches it for downstream code and echoes the identifiers.
"""

from collections.abc import Callable

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.requests import Request
from starlette.responses import Response

from flowctx.api.constants import CORRELATOR_HEADER, TRANSACTION_ID_HEADER
from flowctx.api.middleware.request_context import RequestContextMiddleware
from flowctx.core.carrier import current_context
from flowctx.core.context import RequestContext


@pytest.mark.unit
class TestBuildContext:
    """Test suite for context construction."""

    def test_uses_correlator_header(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
    ) -> None:
        """Test that an inbound correlator is propagated as-is."""
        request = make_request(headers={CORRELATOR_HEADER: "abc-123"})

        ctx = request_context_middleware.build_context(request)

        assert ctx.correlator == "abc-123"

    @pytest.mark.parametrize("header_value", [None, "", "   "])
    def test_generates_correlator_when_missing_or_blank(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
        header_value: str | None,
    ) -> None:
        """Test that a missing or whitespace-only header is replaced."""
        headers = {CORRELATOR_HEADER: header_value} if header_value is not None else {}

        ctx = request_context_middleware.build_context(make_request(headers=headers))

        assert ctx.correlator
        assert ctx.correlator.strip() == ctx.correlator
        assert len(ctx.correlator) == 36

    def test_always_generates_fresh_transaction_id(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
    ) -> None:
        """Test that transaction ids are unique per request and never inbound."""
        request = make_request(headers={TRANSACTION_ID_HEADER: "client-chosen"})

        first = request_context_middleware.build_context(request)
        second = request_context_middleware.build_context(request)

        assert first.transaction_id != "client-chosen"
        assert first.transaction_id != second.transaction_id

    def test_stamps_static_fields(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
    ) -> None:
        """Test service and component from configuration."""
        ctx = request_context_middleware.build_context(make_request())

        assert ctx.service == "orders"
        assert ctx.component == "orders-api"

    def test_unset_static_fields_are_absent(
        self, noop_app: object, make_request: Callable[..., Request]
    ) -> None:
        """Test that no empty svc or comp keys are produced."""
        middleware = RequestContextMiddleware(noop_app)  # type: ignore[arg-type]

        ctx = middleware.build_context(make_request())

        assert "svc" not in ctx
        assert "comp" not in ctx


@pytest.mark.unit
class TestRequestContextDispatch:
    """Test suite for dispatch behavior."""

    async def test_context_attached_for_downstream(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
        ok_response: Response,
    ) -> None:
        """Test that downstream code sees the built context."""
        seen: list[RequestContext] = []

        async def call_next(_: Request) -> Response:
            seen.append(current_context())
            return ok_response

        request = make_request(headers={CORRELATOR_HEADER: "abc-123"})

        await request_context_middleware.dispatch(request, call_next)

        assert seen[0].correlator == "abc-123"
        assert seen[0] == request.state.context
        assert current_context() == RequestContext()

    async def test_identifiers_echoed_in_headers(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
        call_next: MockType,
    ) -> None:
        """Test that both identifiers are returned to the caller."""
        request = make_request(headers={CORRELATOR_HEADER: "abc-123"})

        response = await request_context_middleware.dispatch(request, call_next)

        assert response.headers[CORRELATOR_HEADER] == "abc-123"
        assert (
            response.headers[TRANSACTION_ID_HEADER]
            == request.state.context.transaction_id
        )
        call_next.assert_awaited_once_with(request)

    async def test_context_detached_when_downstream_raises(
        self,
        request_context_middleware: RequestContextMiddleware,
        make_request: Callable[..., Request],
        mocker: MockerFixture,
    ) -> None:
        """Test that a failure does not leave the context attached."""
        call_next = mocker.AsyncMock(side_effect=RuntimeError("boom"))

        with pytest.raises(RuntimeError):
            await request_context_middleware.dispatch(make_request(), call_next)

        assert current_context() == RequestContext()
