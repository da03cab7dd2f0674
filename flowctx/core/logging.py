"""Structured logging with request-context enrichment.

This module configures Loguru so that every record emitted while a contextual
log action runs carries the request's diagnostic fields. The fields are not
passed at the call site: ``diagnostic_patcher`` copies whatever the
diagnostic store holds for the current thread into ``record["extra"]``.

Features:
- **Context enrichment**: Automatic inclusion of ``trans``, ``corr``, ``op``...
- **Structured output**: JSON with context fields at the top level
- **Console output**: Human-readable lines with ``[key=value]`` segments
- **Standard library integration**: Captures logs from uvicorn and others

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: Structured format for log collectors (cloud and self-hosted)
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from typing import TYPE_CHECKING, Any, Final, Protocol, cast

from loguru import logger

from flowctx.core.context import ContextField
from flowctx.core.diagnostics import diagnostic_store

if TYPE_CHECKING:
    from collections.abc import Callable

    from loguru import Logger, Record


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool:
        """Debug mode flag."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str | None:
        """Log formatter type."""
        ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Context fields first, in reserved order, then request metadata
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    *ContextField.ALL,
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_host",
)


def diagnostic_patcher(record: Record) -> None:
    """Merge the current thread's diagnostic fields into a log record.

    Fields passed explicitly to the log call win over installed ones.

    Args:
        record: Loguru record being created.
    """
    fields = diagnostic_store.snapshot()
    if not fields:
        return
    extra = record["extra"]
    for key, value in fields.items():
        extra.setdefault(key, value)


def _escape(value: str) -> str:
    # Loguru reads the formatter output as a format string with color markup
    return value.replace("{", "{{").replace("}", "}}").replace("<", r"\<")


def _format_field(key: str, value: object) -> str | None:
    """Format a context field as ``key=value`` for console display.

    Args:
        key: The field name.
        value: The field value.

    Returns:
        str | None: Formatted field or None if formatting fails.
    """
    try:
        if key == "duration_ms":
            str_value = f"{value}ms"
        else:
            str_value = str(value)
        # Identifiers are never shortened, they are what people grep for
        if key not in ContextField.ALL and len(str_value) > MAX_FIELD_VALUE_LENGTH:
            str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
        return f"{_escape(str(key))}={_escape(str_value)}"
    except (AttributeError, TypeError, ValueError):
        return None


def _format_context_fields(extra: dict[str, Any]) -> list[str]:
    """Format all context fields from extra data.

    Args:
        extra: Extra fields from the log record.

    Returns:
        list[str]: List of formatted context parts.
    """
    context_parts = []

    for field in PRIORITY_FIELDS:
        if extra.get(field) is not None:
            formatted = _format_field(field, extra[field])
            if formatted:
                context_parts.append(f"<yellow>{formatted}</yellow>")

    for key, value in extra.items():
        if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None:
            formatted = _format_field(key, value)
            if formatted:
                context_parts.append(f"<dim>{formatted}</dim>")

    return context_parts


def format_console_with_context(record: Record) -> str:
    """Format log record for console with all context fields visible.

    Args:
        record: Loguru record to format.

    Returns:
        str: Format string for the record with context segments inlined.
    """
    try:
        time_str = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level_name = record["level"].name

        parts = [
            f"<green>{time_str}</green>",
            f"<level>{level_name: <8}</level>",
            f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
        ]

        context_parts = _format_context_fields(record["extra"])
        if context_parts:
            parts.append(" ".join(f"[{part}]" for part in context_parts))

        parts.append(_escape(str(record["message"])))

        line = " | ".join(parts)
        if record["exception"]:
            line += "\n{exception}"
    except (AttributeError, TypeError, ValueError, KeyError):
        return DEFAULT_LOG_FORMAT + "\n"
    else:
        return line + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    This handler captures logs from libraries using standard logging
    and forwards them to Loguru for consistent formatting.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        extra: dict[str, Any] = {}

        # Map uvicorn access log fields to our standard fields
        if record.name == "uvicorn.access" and hasattr(record, "scope"):
            scope = record.scope
            extra["method"] = scope.get("method", "")
            extra["path"] = scope.get("path", "")
            client = scope.get("client") or ("unknown",)
            extra["client_host"] = client[0]

            headers = dict(scope.get("headers", []))
            correlator = headers.get(b"x-correlator", b"").decode("utf-8")
            if correlator:
                extra[ContextField.CORRELATOR] = correlator

        logger.opt(depth=depth, exception=record.exc_info).bind(**extra).log(
            level, record.getMessage()
        )


def serialize_for_json(record: Record) -> str:
    """Format log record as a single JSON line.

    Context fields appear as top-level keys under their short names.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record["extra"]:
        log_entry.update({k: v for k, v in extra.items() if not k.startswith("_")})

    if exc := record["exception"]:
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return json.dumps(log_entry, default=str) + "\n"


def detect_environment() -> str:
    """Auto-detect the log formatter for the deployment environment.

    Returns:
        str: Detected formatter type (console or json).
    """
    if os.getenv("K_SERVICE") or os.getenv("AWS_EXECUTION_ENV"):
        return "json"
    return "console"


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru sinks and the diagnostic patcher.

    Args:
        settings: Application settings containing log configuration.

    Note:
        This function ensures it's only called once using module state.
    """
    if _state.configured:
        return

    logger.remove()
    logger.configure(patcher=cast("Callable[[Record], None]", diagnostic_patcher))

    formatter_type = settings.log_config.log_formatter_type or detect_environment()

    if formatter_type == "json":

        def structured_sink(message: object) -> None:
            """Write each record as one JSON line."""
            record = cast("Record", message.record)  # type: ignore[attr-defined]
            sys.stdout.write(serialize_for_json(record))
            sys.stdout.flush()

        logger.add(
            structured_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=cast("Any", format_console_with_context),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )

    # Configure standard library logging to use Loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        uvicorn_logger = logging.getLogger(logger_name)
        if not uvicorn_logger.handlers:
            uvicorn_logger.handlers = [InterceptHandler()]
            uvicorn_logger.setLevel(logging.INFO)
            uvicorn_logger.propagate = False

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        formatter_type=formatter_type,
        log_level=settings.log_config.log_level,
    )

    _state.configured = True


def get_logger(name: str) -> Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name, typically __name__.

    Returns:
        Logger: Logger instance bound with the name.
    """
    return logger.bind(logger_name=name)
