"""Per-thread diagnostic store read ambiently by the logger.

Log statements inside a contextual log action do not receive the request
context as an argument. Instead, the action runs while the context fields are
installed in this store, and the loguru patcher registered by
``setup_logging`` copies them into every record created on the same thread.

The store is only a staging area. ``installed`` writes it right before a log
action and restores it right after, on every exit path, so a thread that goes
on to serve an unrelated request never sees stale fields.
"""

import threading
from collections.abc import Generator, Mapping
from contextlib import contextmanager


class _ThreadSlot(threading.local):
    """State of the store for the current thread."""

    def __init__(self) -> None:
        self.fields: dict[str, str] = {}


class DiagnosticStore:
    """Thread-local map of diagnostic fields.

    Each thread owns its own slot, and an install/action/clear cycle runs
    synchronously on that thread, so two cycles never interleave on one slot.
    A nested cycle started by the action itself restores the outer fields
    when it ends.
    """

    def __init__(self) -> None:
        self._slot = _ThreadSlot()

    @contextmanager
    def installed(self, fields: Mapping[str, str]) -> Generator[dict[str, str]]:
        """Install ``fields`` for the current thread for the duration of the block.

        Args:
            fields: Diagnostic fields to expose to the logger.

        Yields:
            dict[str, str]: The installed map.
        """
        slot = self._slot
        previous = slot.fields
        slot.fields = dict(fields)
        try:
            yield slot.fields
        finally:
            slot.fields = previous

    def snapshot(self) -> dict[str, str]:
        """Return a copy of the fields installed on the current thread."""
        return dict(self._slot.fields)

    def is_empty(self) -> bool:
        return not self._slot.fields

    def clear(self) -> None:
        """Drop whatever is installed on the current thread."""
        self._slot.fields = {}


diagnostic_store = DiagnosticStore()
