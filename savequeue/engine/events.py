"""Listener surface for save queue notifications.

The owning application observes the queue through SaveQueueListener
objects: saving status, pending count, conflicts, fatal errors, and
per-operation failures that require rolling back optimistic local state.
"""

import logging
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

from ..operations.model import Operation

logger = logging.getLogger(__name__)


@runtime_checkable
class SaveQueueListener(Protocol):
    """Observer interface for a SaveService.

    Implementations only need the methods they care about when registered
    through CallbackListener; direct implementations must provide all five.
    """

    def on_save_status_change(self, is_saving: bool) -> None:
        ...

    def on_queue_length_change(self, length: int) -> None:
        ...

    def on_conflict(self, server_updated_at: Optional[str], client_updated_at: Optional[str]) -> None:
        ...

    def on_error(self, error: BaseException) -> None:
        ...

    def on_operation_failed(self, operation: Operation, error: BaseException) -> None:
        ...


class CallbackListener:
    """Adapts plain callables to the listener interface."""

    def __init__(
        self,
        on_save_status_change: Optional[Callable[[bool], Any]] = None,
        on_queue_length_change: Optional[Callable[[int], Any]] = None,
        on_conflict: Optional[Callable[[Optional[str], Optional[str]], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
        on_operation_failed: Optional[Callable[[Operation, BaseException], Any]] = None,
    ):
        self._on_save_status_change = on_save_status_change
        self._on_queue_length_change = on_queue_length_change
        self._on_conflict = on_conflict
        self._on_error = on_error
        self._on_operation_failed = on_operation_failed

    def on_save_status_change(self, is_saving: bool) -> None:
        if self._on_save_status_change:
            self._on_save_status_change(is_saving)

    def on_queue_length_change(self, length: int) -> None:
        if self._on_queue_length_change:
            self._on_queue_length_change(length)

    def on_conflict(self, server_updated_at: Optional[str], client_updated_at: Optional[str]) -> None:
        if self._on_conflict:
            self._on_conflict(server_updated_at, client_updated_at)

    def on_error(self, error: BaseException) -> None:
        if self._on_error:
            self._on_error(error)

    def on_operation_failed(self, operation: Operation, error: BaseException) -> None:
        if self._on_operation_failed:
            self._on_operation_failed(operation, error)


class SaveEvents:
    """Fan-out of notifications to every registered listener.

    A listener that raises is logged and skipped; it never interrupts the
    queue or the other listeners.
    """

    def __init__(self, listeners: Optional[List[SaveQueueListener]] = None):
        self._listeners: List[SaveQueueListener] = list(listeners or [])

    def add(self, listener: SaveQueueListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: SaveQueueListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def __len__(self) -> int:
        return len(self._listeners)

    def _dispatch(self, method: str, *args) -> None:
        for listener in list(self._listeners):
            handler = getattr(listener, method, None)
            if handler is None:
                continue
            try:
                handler(*args)
            except Exception:
                logger.exception("Save listener %r failed in %s", listener, method)

    def save_status_changed(self, is_saving: bool) -> None:
        self._dispatch("on_save_status_change", is_saving)

    def queue_length_changed(self, length: int) -> None:
        self._dispatch("on_queue_length_change", length)

    def conflict(self, server_updated_at: Optional[str], client_updated_at: Optional[str]) -> None:
        self._dispatch("on_conflict", server_updated_at, client_updated_at)

    def error(self, error: BaseException) -> None:
        self._dispatch("on_error", error)

    def operation_failed(self, operation: Operation, error: BaseException) -> None:
        self._dispatch("on_operation_failed", operation, error)
