"""Sequential worker that drains the save queue.

Only one write is in flight at a time. Failures are classified and either
retried at the head of the queue, dropped, or escalated; auth failures and
version conflicts stop the run and clear the whole queue.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

from ..errors import AuthError, ErrorClass, ErrorClassifier
from ..operations.model import Operation
from ..store.base import StoreAdapter
from .events import SaveEvents
from .queue import SaveQueue
from .version import VersionTracker

logger = logging.getLogger(__name__)

AUTH_FAILURE_MESSAGE = "Authentication failed. Please log in again to save your work."


@dataclass
class RetryPolicy:
    """Configurable retry policy.

    With the default zero initial backoff a failed operation is retried as
    soon as it is back at the head of the queue.
    """

    max_retries: int = 3
    initial_backoff_seconds: float = 0.0
    max_backoff_seconds: float = 30.0
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, retry: int) -> float:
        """Delay before re-running an operation that failed transiently.

        The retried operation already sits at the head of the queue, so
        this delay also holds back every save queued behind it.

        Args:
            retry: The operation's retry_count after incrementing (1-based)

        Returns:
            Seconds to sleep, 0.0 when backoff is disabled
        """
        if self.initial_backoff_seconds <= 0:
            return 0.0
        delay = self.initial_backoff_seconds * self.backoff_multiplier ** (retry - 1)
        delay = min(delay, self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()


class Processor:
    """Drains a SaveQueue through a StoreAdapter, one operation at a time."""

    def __init__(
        self,
        queue: SaveQueue,
        adapter: StoreAdapter,
        events: SaveEvents,
        version: VersionTracker,
        policy: Optional[RetryPolicy] = None,
        classifier: Optional[ErrorClassifier] = None,
        is_paused: Optional[Callable[[], bool]] = None,
    ):
        self.queue = queue
        self.adapter = adapter
        self.events = events
        self.version = version
        self.policy = policy or RetryPolicy()
        self.classifier = classifier or ErrorClassifier()
        self._is_paused = is_paused or (lambda: False)
        self._task: Optional[asyncio.Task] = None
        self.current_operation: Optional[Operation] = None
        # Failure that stopped the most recent run, if it was auth or conflict
        self.fatal_error: Optional[Exception] = None

    @property
    def is_processing(self) -> bool:
        return self._task is not None and not self._task.done()

    def ensure_running(self) -> Optional[asyncio.Task]:
        """Start a drain run unless one is already active.

        Returns:
            The task for the active run, or None if there is nothing to do
        """
        if self.is_processing:
            return self._task
        if not self.queue or self._is_paused():
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop - the next flush() starts the run
            return None
        self._task = loop.create_task(self._run())
        return self._task

    async def wait(self) -> None:
        """Wait for the active run, if any, to finish."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.shield(task)

    async def cancel(self) -> None:
        """Stop the active run. The in-flight operation is abandoned."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        # wait() does not raise the task's CancelledError, so only a
        # cancellation of the caller propagates
        await asyncio.wait({task})

    async def _run(self) -> None:
        self.fatal_error = None
        self.events.save_status_changed(True)
        try:
            while self.queue and not self._is_paused():
                operation = self.queue.pop()
                self.current_operation = operation
                try:
                    result = await self.adapter.execute(operation)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    if not await self._handle_failure(operation, e):
                        break
                else:
                    if result is not None and self.version.accepts(operation.entity_type):
                        self.version.record(result.updated_at)
                    logger.debug("Saved %s", operation.describe())
        finally:
            self.current_operation = None
            self.events.save_status_changed(False)

    async def _handle_failure(self, operation: Operation, error: Exception) -> bool:
        """Act on a failed operation.

        Returns:
            False if the run must stop
        """
        error_class = self.classifier.classify(error)
        logger.error("Failed %s: %s (%s)", operation.describe(), error, error_class.value)

        if error_class == ErrorClass.AUTH:
            self.queue.clear()
            self.fatal_error = error
            self.events.operation_failed(operation, error)
            self.events.error(AuthError(AUTH_FAILURE_MESSAGE, getattr(error, "status", 401)))
            return False

        if error_class == ErrorClass.CONFLICT:
            self.queue.clear()
            self.fatal_error = error
            self.events.operation_failed(operation, error)
            self.events.conflict(
                getattr(error, "server_updated_at", None),
                getattr(error, "client_updated_at", None),
            )
            return False

        if error_class == ErrorClass.CLIENT:
            logger.warning(
                "Client error (%s) for %s, not retrying",
                getattr(error, "status", None), operation.describe(),
            )
            self.events.operation_failed(operation, error)
            return True

        if self._is_paused():
            # A whole-document save has replaced this write
            logger.warning("Dropping %s, superseded by a full save", operation.describe())
            self.events.operation_failed(operation, error)
            return False

        if operation.retry_count < self.policy.max_retries:
            operation.retry_count += 1
            logger.info(
                "Retrying %s (attempt %d/%d)",
                operation.describe(), operation.retry_count, self.policy.max_retries,
            )
            self.queue.push_front(operation)
            backoff = self.policy.calculate_backoff(operation.retry_count)
            if backoff > 0:
                await asyncio.sleep(backoff)
            return True

        logger.error(
            "Dropping %s after %d retries", operation.describe(), self.policy.max_retries
        )
        self.events.operation_failed(operation, error)
        self.events.error(error)
        return True
