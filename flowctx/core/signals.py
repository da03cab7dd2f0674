"""Flow lifecycle signals and contextual log handlers.

A request flow produces signals: zero or more values, then exactly one of
completed or failed. Each signal captures the ``RequestContext`` visible in
the flow at the point it was observed. Handlers built with ``on_signal`` (or
the ``on_value``/``on_complete``/``on_error`` shortcuts) run a log action with
that context installed in the diagnostic store, so plain ``logger`` calls
inside the action come out tagged with the request's fields:

    response = await observe(
        call_next(request),
        on_value(lambda r: logger.info("Done", status_code=r.status_code)),
        on_error(lambda e: logger.error("Failed: {}", type(e).__name__)),
    )

Every handler performs its own install/action/clear cycle. A failing action
is logged and swallowed; it never changes the outcome of the flow.
"""

from collections.abc import AsyncGenerator, AsyncIterable, Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from flowctx.core.carrier import current_context
from flowctx.core.context import RequestContext
from flowctx.core.diagnostics import DiagnosticStore, diagnostic_store


class SignalType(Enum):
    """Kinds of lifecycle events a flow can produce."""

    VALUE = "value-emitted"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Signal[T]:
    """A lifecycle event of a flow together with the context seen at that point."""

    type: SignalType
    value: T | None = None
    error: BaseException | None = None
    context: RequestContext = field(default_factory=RequestContext)

    @classmethod
    def next(cls, value: T) -> "Signal[T]":
        """Create a value signal in the current flow."""
        return cls(SignalType.VALUE, value=value, context=current_context())

    @classmethod
    def complete(cls) -> "Signal[T]":
        """Create a completion signal in the current flow."""
        return cls(SignalType.COMPLETED, context=current_context())

    @classmethod
    def fail(cls, error: BaseException) -> "Signal[T]":
        """Create a failure signal in the current flow."""
        return cls(SignalType.FAILED, error=error, context=current_context())

    @property
    def is_value(self) -> bool:
        return self.type is SignalType.VALUE

    @property
    def is_completed(self) -> bool:
        return self.type is SignalType.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.type is SignalType.FAILED


type SignalHandler = Callable[[Signal[Any]], None]
type SignalFilter = Callable[[Signal[Any]], bool]


def on_signal(
    signal_filter: SignalFilter,
    action: Callable[[Signal[Any]], None],
    *,
    store: DiagnosticStore = diagnostic_store,
) -> SignalHandler:
    """Build a handler that runs ``action`` with the signal's context installed.

    For every delivered signal the handler returns immediately when
    ``signal_filter`` rejects it or raises. Otherwise it installs the signal's context
    fields into the diagnostic store of the current thread, runs ``action``
    and restores the store, whatever the action does.

    Args:
        signal_filter: Predicate selecting the signals to act on.
        action: Log action. Usually a few ``logger`` calls.
        store: Diagnostic store to install into.

    Returns:
        SignalHandler: Callable accepting a ``Signal``.
    """

    def handle(signal: Signal[Any]) -> None:
        try:
            selected = signal_filter(signal)
        except Exception as exc:  # noqa: BLE001 - logging must not break the flow
            logger.opt(exception=exc).warning(
                "Contextual log filter failed on {} signal",
                signal.type.value,
            )
            return
        if not selected:
            return
        with store.installed(signal.context.to_map()):
            try:
                action(signal)
            except Exception as exc:  # noqa: BLE001 - logging must not break the flow
                logger.opt(exception=exc).warning(
                    "Contextual log action failed on {} signal",
                    signal.type.value,
                )

    return handle


def on_value[T](action: Callable[[T], None]) -> SignalHandler:
    """Build a handler for value signals, passing the emitted value."""
    return on_signal(lambda s: s.is_value, lambda s: action(s.value))


def on_complete(action: Callable[[], None]) -> SignalHandler:
    """Build a handler for the completion signal."""
    return on_signal(lambda s: s.is_completed, lambda _: action())


def on_error(action: Callable[[BaseException], None]) -> SignalHandler:
    """Build a handler for the failure signal, passing the error."""
    return on_signal(lambda s: s.is_failed, lambda s: action(s.error))


def emit(signal: Signal[Any], *handlers: SignalHandler) -> None:
    """Deliver one signal to each handler in order."""
    for handler in handlers:
        handler(signal)


async def observe[T](awaitable: Awaitable[T], *handlers: SignalHandler) -> T:
    """Await a single-valued flow and deliver its signals to ``handlers``.

    A non-None result is delivered as a value signal followed by completion;
    a None result only completes. Errors are delivered as a failure signal
    and re-raised. Cancellation delivers nothing.

    Args:
        awaitable: The flow to await.
        *handlers: Handlers receiving the flow's signals.

    Returns:
        T: The awaited result.
    """
    try:
        result = await awaitable
    except Exception as exc:
        emit(Signal.fail(exc), *handlers)
        raise
    if result is not None:
        emit(Signal.next(result), *handlers)
    emit(Signal.complete(), *handlers)
    return result


async def observe_stream[T](
    source: AsyncIterable[T], *handlers: SignalHandler
) -> AsyncGenerator[T]:
    """Re-yield a multi-valued flow, delivering its signals to ``handlers``.

    Each item is signalled before it is handed downstream. Exhaustion
    delivers completion, an error delivers a failure and is re-raised.
    Closing the generator early (or cancelling its consumer) delivers no
    terminal signal.

    Args:
        source: The flow to iterate.
        *handlers: Handlers receiving the flow's signals.

    Yields:
        T: Items of ``source``.
    """
    iterator = aiter(source)
    try:
        try:
            async for item in iterator:
                emit(Signal.next(item), *handlers)
                yield item
        except Exception as exc:
            emit(Signal.fail(exc), *handlers)
            raise
        emit(Signal.complete(), *handlers)
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()
