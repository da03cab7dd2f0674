"""Request identity middleware.

This module implements the first stage of the middleware chain. It builds the
request context every later stage and handler logs with:

- **Correlator**: Taken from the ``X-Correlator`` header, generated if absent
- **Transaction id**: Always generated fresh for each request
- **Static fields**: Service and component names from configuration

The context is attached to the request flow for the duration of the
downstream call and also stored on ``request.state.context`` for code that
holds the request object. Both identifiers are echoed in response headers,
error responses included.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from flowctx.api.constants import CORRELATOR_HEADER, TRANSACTION_ID_HEADER
from flowctx.core.carrier import attach_context
from flowctx.core.config import ContextConfig
from flowctx.core.context import (
    RequestContext,
    generate_correlator,
    generate_transaction_id,
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware establishing the request context.

    Args:
        app: The ASGI application.
        context_config: Static context fields. Defaults to none.
    """

    def __init__(
        self, app: ASGIApp, *, context_config: ContextConfig | None = None
    ) -> None:
        super().__init__(app)
        self.context_config = context_config or ContextConfig()

    def build_context(self, request: Request) -> RequestContext:
        """Create a fresh context for an inbound request.

        Args:
            request: The incoming request.

        Returns:
            RequestContext: Context with transaction id, correlator and the
                configured static fields.
        """
        correlator = (request.headers.get(CORRELATOR_HEADER) or "").strip()
        if not correlator:
            correlator = generate_correlator()

        return (
            RequestContext()
            .set_transaction_id(generate_transaction_id())
            .set_correlator(correlator)
            .set_service(self.context_config.service)
            .set_component(self.context_config.component)
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request with its context attached.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with transaction id and correlator headers.
        """
        ctx = self.build_context(request)
        request.state.context = ctx

        with attach_context(ctx):
            response = await call_next(request)

        response.headers[TRANSACTION_ID_HEADER] = ctx.transaction_id or ""
        response.headers[CORRELATOR_HEADER] = ctx.correlator or ""
        return response
