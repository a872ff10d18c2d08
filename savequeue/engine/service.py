"""Save service for one open document.

Ties together the queue, debounce gateway, processor and version tracker
behind the public save API, and owns the whole-document save path used by
local storage mode and by conflict resolution.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterable, Iterator, Optional, Union

from pydantic import BaseModel

from ..config import SaveQueueConfig, StorageMode
from ..errors import ErrorClass, ErrorClassifier
from ..operations.coalesce import CoalesceOutcome
from ..operations.model import Operation, OperationKind, OperationType, make_operation
from ..store.base import StoreAdapter, WriteResult
from ..store.local import LocalDocumentStore
from .debounce import DebounceGateway
from .entities import EntitySaves
from .events import CallbackListener, SaveEvents, SaveQueueListener
from .processor import Processor, RetryPolicy
from .queue import SaveQueue
from .version import VersionTracker

logger = logging.getLogger(__name__)


class SaveStatus(BaseModel):
    """Snapshot of the service state for status indicators."""

    model_config = {"arbitrary_types_allowed": True}

    is_saving: bool
    queue_length: int
    current_operation: Optional[Operation] = None
    is_full_save_in_progress: bool = False


class SaveService(EntitySaves):
    """Per-document save queue service.

    Example:
        service = SaveService(adapter, listeners=[ui_listener])
        service.queue_save(make_operation(OperationType.NODE_UPDATE, "n1", "s1", {"title": "T"}))
        await service.flush()
    """

    def __init__(
        self,
        adapter: StoreAdapter,
        config: Optional[SaveQueueConfig] = None,
        listeners: Iterable[SaveQueueListener] = (),
        local_store: Optional[LocalDocumentStore] = None,
        version: Optional[VersionTracker] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.config = config or SaveQueueConfig()
        self.adapter = adapter
        self.local_store = local_store
        self._owns_local_store = False
        self.storage_mode = self.config.storage_mode
        self.events = SaveEvents(list(listeners))
        self.version = version or VersionTracker()
        self.classifier = classifier or ErrorClassifier()
        self.queue = SaveQueue(self.events)
        self.debouncer = DebounceGateway(self._submit)
        self.processor = Processor(
            self.queue,
            adapter,
            self.events,
            self.version,
            policy=RetryPolicy(
                max_retries=self.config.max_retries,
                initial_backoff_seconds=self.config.retry_initial_backoff_seconds,
                max_backoff_seconds=self.config.retry_max_backoff_seconds,
            ),
            classifier=self.classifier,
            is_paused=lambda: self._full_save_in_progress,
        )
        self._full_save_in_progress = False
        self._suspended = 0
        self._trigger_full_save: Optional[Callable[[], Any]] = None

    # Listener management

    def add_listener(self, listener: SaveQueueListener) -> None:
        self.events.add(listener)

    def remove_listener(self, listener: SaveQueueListener) -> None:
        self.events.remove(listener)

    def set_callbacks(self, **callbacks) -> CallbackListener:
        """Register plain callables, e.g. ``on_conflict=show_dialog``."""
        listener = CallbackListener(**callbacks)
        self.events.add(listener)
        return listener

    def set_full_save_trigger(self, fn: Optional[Callable[[], Any]]) -> None:
        """Hook invoked instead of queueing while in local storage mode."""
        self._trigger_full_save = fn

    # Queueing

    def queue_save(self, operation: Union[Operation, Dict[str, Any]]) -> Optional[asyncio.Task]:
        """Coalesce an operation into the queue and start processing.

        Args:
            operation: An Operation, or its fields as a dict

        Returns:
            The task of the current processing run. It completes when the
            whole run finishes, not when this particular operation does.
            None when nothing was queued or nothing needs processing.
        """
        op = self._coerce(operation)

        if self.storage_mode == StorageMode.LOCAL:
            self._request_full_save()
            return None

        if not self._submit(op):
            return None
        return self.processor.ensure_running()

    def queue_save_debounced(
        self,
        operation: Union[Operation, Dict[str, Any]],
        delay_ms: Optional[int] = None,
    ) -> None:
        """Queue an update once its entity has been quiet for ``delay_ms``."""
        op = self._coerce(operation)
        if self.storage_mode == StorageMode.LOCAL:
            self._request_full_save()
            return
        if delay_ms is None:
            delay_ms = self.default_debounce_ms(op)
        self.debouncer.submit(op, delay_ms)

    def default_debounce_ms(self, op: Operation) -> int:
        if op.type == OperationType.MESSAGE_UPDATE:
            return self.config.message_debounce_ms
        if op.type == OperationType.NODE_UPDATE:
            return self.config.node_debounce_ms
        return self.config.metadata_debounce_ms

    def _submit(self, op: Operation) -> bool:
        """Coalesce ``op`` into the queue. Returns False if it was ignored."""
        if self._suspended:
            logger.debug("Saves suspended, ignoring %s", op.describe())
            return False
        if self._full_save_in_progress:
            logger.debug("Full save in progress, skipping %s", op.describe())
            return False

        if op.is_kind(OperationKind.DELETE):
            self.debouncer.cancel(op.key)

        outcome = self.queue.submit(op)
        if outcome == CoalesceOutcome.SWALLOWED:
            logger.debug("Delete already queued, ignoring %s", op.describe())
        # Debounced submissions arrive from a timer, so the run starts here too
        if outcome != CoalesceOutcome.SWALLOWED and self.queue:
            self.processor.ensure_running()
        return True

    def _coerce(self, operation: Union[Operation, Dict[str, Any]]) -> Operation:
        if isinstance(operation, Operation):
            return operation
        fields = dict(operation)
        return make_operation(
            OperationType(fields.pop("type")),
            fields.pop("entity_id"),
            fields.pop("story_id"),
            fields.pop("data", None),
        )

    def _request_full_save(self) -> None:
        if self._suspended:
            return
        if self._trigger_full_save is None:
            logger.debug("Local storage mode without a full save trigger")
            return
        self._trigger_full_save()

    @contextmanager
    def suspend_saves(self) -> Iterator[None]:
        """Ignore saves while applying changes that came from the server."""
        self._suspended += 1
        try:
            yield
        finally:
            self._suspended -= 1

    async def flush(self) -> None:
        """Wait until the queue has drained or the run has stopped."""
        task = self.processor.ensure_running()
        if task is not None:
            await asyncio.shield(task)

    def cancel_all_pending_saves(self) -> None:
        """Drop every debounced and queued operation."""
        cancelled = self.debouncer.cancel_all()
        dropped = self.queue.clear()
        if cancelled or dropped:
            logger.info(
                "Cancelled %d debounced and %d queued saves", cancelled, len(dropped)
            )

    # Whole-document saves

    async def save_full_story(self, story_id: str, document: Dict[str, Any]) -> WriteResult:
        """Persist the whole document, replacing any pending partial saves.

        In server mode the last known stamp is sent so a concurrent remote
        change is reported as a conflict instead of being overwritten.
        """
        return await self._save_document(story_id, document, force=False)

    async def force_save(self, story_id: str, document: Dict[str, Any]) -> WriteResult:
        """Overwrite the server copy regardless of its version."""
        return await self._save_document(story_id, document, force=True)

    async def _save_document(self, story_id: str, document: Dict[str, Any], force: bool) -> WriteResult:
        self.cancel_all_pending_saves()
        self._full_save_in_progress = True
        self.events.save_status_changed(True)
        notified = False
        try:
            if self.storage_mode == StorageMode.LOCAL:
                local_store = await self._local_store()
                result = await local_store.save(story_id, document)
            else:
                in_flight = self.processor.is_processing
                # Let an in-flight partial write settle before the full write
                await self.processor.wait()
                self.queue.clear()
                if in_flight and self.processor.fatal_error is not None and not force:
                    # Listeners already heard about it from the processor
                    notified = True
                    raise self.processor.fatal_error
                result = await self.adapter.save_document(
                    story_id,
                    document,
                    last_known_updated_at=None if force else self.version.last_known_updated_at,
                    force=force,
                )
            self.version.record(result.updated_at)
            return result
        except Exception as e:
            if notified:
                raise
            if self.classifier.classify(e) == ErrorClass.CONFLICT:
                self.events.conflict(
                    getattr(e, "server_updated_at", None),
                    getattr(e, "client_updated_at", None),
                )
            else:
                self.events.error(e)
            raise
        finally:
            self._full_save_in_progress = False
            self.events.save_status_changed(False)

    async def _local_store(self) -> LocalDocumentStore:
        if self.local_store is None:
            self.local_store = await LocalDocumentStore(self.config.local_db_path).connect()
            self._owns_local_store = True
        return self.local_store

    # Status and lifecycle

    def get_status(self) -> SaveStatus:
        return SaveStatus(
            is_saving=self.processor.is_processing or self._full_save_in_progress,
            queue_length=len(self.queue),
            current_operation=self.processor.current_operation,
            is_full_save_in_progress=self._full_save_in_progress,
        )

    async def close(self) -> None:
        """Cancel timers and stop the worker. Pending saves are discarded."""
        self.cancel_all_pending_saves()
        await self.processor.cancel()
        if self._owns_local_store:
            await self.local_store.close()
            self.local_store = None
            self._owns_local_store = False
