"""Per-entity debouncing of high-frequency updates.

Keystroke-level edits produce a stream of updates for the same entity.
The gateway holds each entity's latest update back until the entity has
been quiet for the requested delay, then submits it once.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ..operations.model import EntityKey, Operation, OperationKind

logger = logging.getLogger(__name__)


class DebounceGateway:
    """Debounces operations by entity key.

    Only updates are delayed; inserts, deletes and one-shot writes go to
    ``submit`` immediately so creation and removal are never lost to a
    timer race.
    """

    def __init__(self, submit: Callable[[Operation], Any]):
        self._submit = submit
        self._pending: Dict[EntityKey, asyncio.Task] = {}

    def submit(self, op: Operation, delay_ms: int) -> None:
        """Submit ``op`` after ``delay_ms`` of quiet for its entity key."""
        if not op.is_kind(OperationKind.UPDATE):
            logger.debug("Not debouncing %s", op.describe())
            self._submit(op)
            return

        self.cancel(op.key)

        async def delayed_submit():
            await asyncio.sleep(delay_ms / 1000)
            self._pending.pop(op.key, None)
            self._submit(op)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop - submit synchronously
            self._submit(op)
            return
        self._pending[op.key] = loop.create_task(delayed_submit())

    def cancel(self, key: EntityKey) -> bool:
        """Cancel the pending timer for ``key``.

        Returns:
            True if a timer was cancelled
        """
        task = self._pending.pop(key, None)
        if task is None or task.done():
            return False
        task.cancel()
        return True

    def cancel_all(self) -> int:
        """Cancel every pending timer and return how many were cancelled."""
        cancelled = 0
        for key in list(self._pending):
            if self.cancel(key):
                cancelled += 1
        return cancelled

    def pending(self, key: EntityKey) -> Optional[asyncio.Task]:
        return self._pending.get(key)

    def __len__(self) -> int:
        return len(self._pending)
