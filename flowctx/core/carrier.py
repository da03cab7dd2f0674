"""Flow-scoped propagation of the request context.

The current ``RequestContext`` lives in a single ``ContextVar`` slot. Python
copies the active ``contextvars.Context`` whenever asyncio creates a task, so
an attachment made in a request flow is inherited by everything that flow
spawns afterwards, whichever event loop iteration or thread ends up running
it. Attachments made inside a child never flow back to the parent.

Work that leaves the event loop for a thread pool must carry the context
explicitly; ``run_in_executor`` does that with ``contextvars.copy_context``.
"""

import asyncio
import contextvars
from collections.abc import Callable, Coroutine, Generator
from concurrent.futures import Executor
from contextlib import contextmanager
from typing import Any

from flowctx.core.context import FieldValue, RequestContext

_request_context_var: contextvars.ContextVar[RequestContext | None] = (
    contextvars.ContextVar("flowctx_request_context", default=None)
)


def current_context() -> RequestContext:
    """Return the context attached upstream in the current flow.

    Returns:
        RequestContext: The nearest attachment, or an empty context when the
            flow has none.
    """
    ctx = _request_context_var.get()
    return ctx if ctx is not None else RequestContext()


def has_context() -> bool:
    """Return True when the current flow has an attached context."""
    return _request_context_var.get() is not None


@contextmanager
def attach_context(ctx: RequestContext) -> Generator[RequestContext]:
    """Attach ``ctx`` for everything executed inside the block.

    Tasks spawned inside the block inherit ``ctx``. On exit the previous
    attachment is restored, so code outside the block never observes it.

    Args:
        ctx: The context to attach.

    Yields:
        RequestContext: The attached context.
    """
    token = _request_context_var.set(ctx)
    try:
        yield ctx
    finally:
        _request_context_var.reset(token)


def replace_context(ctx: RequestContext) -> RequestContext:
    """Re-attach ``ctx`` for the rest of the current flow.

    The new value shadows earlier attachments for code that runs later in
    the current task and for tasks it spawns afterwards. Parent tasks keep
    seeing their own attachment.

    Args:
        ctx: The context to attach.

    Returns:
        RequestContext: The attached context.
    """
    _request_context_var.set(ctx)
    return ctx


def update_context(**fields: FieldValue) -> RequestContext:
    """Derive a new context from the current one and re-attach it.

    Args:
        **fields: Fields to set. ``None`` removes a field.

    Returns:
        RequestContext: The attached context.
    """
    return replace_context(current_context().merge(fields))


def spawn[T](coro: Coroutine[Any, Any, T]) -> asyncio.Task[T]:
    """Run ``coro`` as a task of the current flow.

    The task starts from a snapshot of the current context; later
    re-attachments on either side are not shared.

    Args:
        coro: Coroutine to schedule.

    Returns:
        asyncio.Task[T]: The scheduled task.
    """
    return asyncio.get_running_loop().create_task(
        coro, context=contextvars.copy_context()
    )


async def run_in_executor[T](
    executor: Executor | None, func: Callable[..., T], *args: Any
) -> T:
    """Run a blocking callable on another pool without losing the flow context.

    Args:
        executor: Target executor, or None for the loop's default pool.
        func: Callable to run.
        *args: Positional arguments for ``func``.

    Returns:
        T: The callable's result.
    """
    loop = asyncio.get_running_loop()
    snapshot = contextvars.copy_context()
    return await loop.run_in_executor(executor, snapshot.run, func, *args)
