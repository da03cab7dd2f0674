"""Root conftest.py for the flowctx test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from loguru import logger

from flowctx.core.config import get_settings
from flowctx.core.diagnostics import diagnostic_store
from flowctx.core.logging import _state, diagnostic_patcher, format_console_with_context

if TYPE_CHECKING:
    from loguru import Record


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None]:
    """Reset Loguru and the diagnostic store around each test.

    Logging stays marked as configured so that app creation does not add
    stdout sinks; tests attach their own capture sinks instead.
    """
    logger.remove()
    logger.configure(patcher=diagnostic_patcher)
    _state.configured = True
    diagnostic_store.clear()
    get_settings.cache_clear()

    yield

    logger.remove()
    diagnostic_store.clear()
    get_settings.cache_clear()


@pytest.fixture
def log_records() -> Generator[list["Record"]]:
    """Capture the Loguru records emitted during a test.

    Yields:
        list[Record]: Records in emission order.
    """
    records: list[Record] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="TRACE"
    )
    yield records
    logger.remove(handler_id)


@pytest.fixture
def console_lines() -> Generator[list[str]]:
    """Capture log lines rendered by the console formatter, without colors.

    Yields:
        list[str]: Rendered lines in emission order.
    """
    lines: list[str] = []
    handler_id = logger.add(
        lambda message: lines.append(str(message)),
        format=format_console_with_context,
        colorize=False,
        level="TRACE",
    )
    yield lines
    logger.remove(handler_id)
