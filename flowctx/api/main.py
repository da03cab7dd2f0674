"""FastAPI application initialization and configuration module.

This module builds the application around the middleware chain:
- Logging setup (Loguru sinks and the diagnostic patcher)
- Framework exception normalizers
- Middleware registration in the correct order
- Health and info endpoints

Middleware are executed in reverse order of registration, so the chain is
registered innermost first.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI
from loguru import logger

from flowctx.api.middleware.error_handler import (
    ErrorMappingMiddleware,
    register_exception_handlers,
)
from flowctx.api.middleware.operation import operation
from flowctx.api.middleware.request_context import RequestContextMiddleware
from flowctx.api.middleware.request_logging import RequestLoggingMiddleware
from flowctx.api.utils.responses import ORJSONResponse
from flowctx.core.config import Settings, get_settings
from flowctx.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        docs_url=settings.docs_url,
        redoc_url=settings.redoc_url,
        openapi_url=settings.openapi_url,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    register_exception_handlers(application)

    # 3. Request logging middleware (logs the handler outcome)
    application.add_middleware(RequestLoggingMiddleware, log_config=settings.log_config)

    # 2. Error mapping middleware (turns failures into error responses)
    application.add_middleware(ErrorMappingMiddleware)

    # 1. Request context middleware (transaction id, correlator)
    application.add_middleware(
        RequestContextMiddleware, context_config=settings.context_config
    )

    @application.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint for liveness checks and load balancers.

        Returns:
            dict[str, str]: The service status.
        """
        return {"status": "healthy"}

    @application.get("/info")
    @operation("info")
    async def info(
        app_settings: Annotated[Settings, Depends(get_settings)],
    ) -> dict[str, Any]:
        """Get application information.

        Args:
            app_settings: Application settings injected via dependency.

        Returns:
            dict[str, Any]: Application name, version and environment.
        """
        return {
            "app_name": app_settings.app_name,
            "version": app_settings.app_version,
            "environment": app_settings.environment,
        }

    return application
