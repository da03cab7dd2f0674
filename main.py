"""Main entry point for running the flowctx FastAPI application."""

import os

import uvicorn
from loguru import logger

from flowctx.core.config import get_settings
from flowctx.core.logging import setup_logging


def main() -> None:
    """Main entry point for the flowctx application."""
    settings = get_settings()

    setup_logging(settings)

    # Container platforms set PORT to the port the container should listen on
    port = int(os.environ.get("PORT", settings.api_port))

    # Route uvicorn's own loggers through Loguru
    log_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": {
            "default": {
                "class": "flowctx.core.logging.InterceptHandler",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
            "uvicorn.access": {
                "handlers": ["default"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }

    mode = "development mode with auto-reload" if settings.debug else "production mode"
    logger.info(f"Starting Uvicorn on http://{settings.api_host}:{port} ({mode})")

    uvicorn.run(
        "flowctx.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=port,
        reload=settings.debug,
        log_config=log_config,
    )


if __name__ == "__main__":
    main()
