"""Operation tagging for request handlers.

Handlers are tagged by composition rather than by runtime interception: the
``operation`` decorator wraps a handler so that the ``op`` field of the
request context is set before the handler body runs. The handler itself does
not import anything from the context or logging modules.

    @app.get("/orders/{order_id}")
    @operation("get-order")
    async def get_order(order_id: int) -> Order:
        ...

Every log line emitted while the handler runs (and by tasks it spawns)
carries ``op=get-order``. Stages upstream of the handler keep their own
context and never see the tag.
"""

import functools
import inspect
from collections.abc import AsyncGenerator, Callable
from typing import Any

from flowctx.core.carrier import attach_context, current_context


def operation[F: Callable[..., Any]](name: str | None = None) -> Callable[[F], F]:
    """Tag a handler's flow with an operation name.

    Args:
        name: Operation name. Defaults to the function's ``__name__``.

    Returns:
        Callable[[F], F]: Decorator preserving the handler's signature.
    """

    def decorator(func: F) -> F:
        op_name = name or func.__name__

        if inspect.isasyncgenfunction(func):

            @functools.wraps(func)
            async def stream_wrapper(*args: Any, **kwargs: Any) -> AsyncGenerator[Any]:
                agen = func(*args, **kwargs)
                try:
                    while True:
                        # Each step may resume in a different consumer context
                        with attach_context(current_context().set_operation(op_name)):
                            try:
                                item = await anext(agen)
                            except StopAsyncIteration:
                                return
                        yield item
                finally:
                    await agen.aclose()

            return stream_wrapper  # type: ignore[return-value]

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
                with attach_context(current_context().set_operation(op_name)):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            with attach_context(current_context().set_operation(op_name)):
                return func(*args, **kwargs)

        return sync_wrapper  # type: ignore[return-value]

    return decorator
