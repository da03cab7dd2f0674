"""Shared fixtures for integration tests.

The application under test is the real middleware chain built by
``create_app`` with a few extra routes standing in for business handlers.
"""

import asyncio
from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from loguru import logger
from pydantic import BaseModel, Field

from flowctx.api.main import create_app
from flowctx.api.middleware.operation import operation
from flowctx.core.config import ContextConfig, LogConfig, Settings
from flowctx.core.exceptions import (
    InternalError,
    NotFoundError,
    UpstreamUnavailableError,
)
from flowctx.core.signals import Signal, emit, on_value

MISSING_ORDER_ID = 404


class OrderIn(BaseModel):
    """Payload of the order creation route."""

    item: str
    quantity: int = Field(gt=0)


def _add_test_routes(app: FastAPI) -> None:
    @app.get("/orders/{order_id}")
    @operation("get-order")
    async def get_order(order_id: int) -> dict[str, int]:
        if order_id == MISSING_ORDER_ID:
            raise NotFoundError(f"Order {order_id} not found")
        emit(
            Signal.next(order_id),
            on_value(lambda v: logger.info("Fetched order {}", v)),
        )
        return {"id": order_id}

    @app.post("/orders", status_code=201)
    async def create_order(order: OrderIn) -> dict[str, str | int]:
        return {"item": order.item, "quantity": order.quantity}

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError("connection string postgres://admin:hunter2@db")

    @app.get("/billing")
    async def billing() -> None:
        raise UpstreamUnavailableError("Billing service unreachable")

    @app.get("/ledger")
    async def ledger() -> None:
        raise InternalError(
            "db password hunter2 at 10.0.0.5", details={"host": "10.0.0.5"}
        )

    @app.get("/work/{name}")
    @operation("work")
    async def work(name: str) -> dict[str, str]:
        for step in range(3):
            await asyncio.sleep(0.01)
            emit(
                Signal.next(step),
                on_value(lambda s: logger.info("step {} for {}", s, name)),
            )
        return {"name": name}


@pytest.fixture
def integration_settings() -> Settings:
    """Settings for the application under test."""
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        environment="development",
        log_config=LogConfig(log_formatter_type="console"),
        context_config=ContextConfig(service="orders", component="orders-api"),
    )


@pytest.fixture
def app(integration_settings: Settings) -> FastAPI:
    """Application with the full middleware chain and test routes."""
    application = create_app(integration_settings)
    _add_test_routes(application)
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client bound to the application in-process."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client
