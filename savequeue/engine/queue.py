"""Ordered queue of pending save operations."""

from typing import Iterator, List, Optional

from ..operations.coalesce import CoalesceOutcome, coalesce, find_index
from ..operations.model import EntityKey, Operation
from .events import SaveEvents


class SaveQueue:
    """Pending operations in processing order, one per entity key.

    Every change to the queue length is reported through ``events``.
    """

    def __init__(self, events: Optional[SaveEvents] = None):
        self._ops: List[Operation] = []
        self._events = events or SaveEvents()

    def submit(self, op: Operation) -> CoalesceOutcome:
        """Coalesce ``op`` into the queue."""
        outcome = coalesce(self._ops, op)
        if outcome != CoalesceOutcome.SWALLOWED:
            self._notify()
        return outcome

    def pop(self) -> Optional[Operation]:
        """Remove and return the head operation."""
        if not self._ops:
            return None
        op = self._ops.pop(0)
        self._notify()
        return op

    def push_front(self, op: Operation) -> None:
        """Put an operation back at the head, ahead of newer work.

        If the entity was resubmitted while ``op`` was in flight, the
        resubmitted entry is folded onto the retried one so the key stays
        unique.
        """
        index = find_index(self._ops, op)
        if index is not None:
            later = self._ops.pop(index)
            pending = [op]
            coalesce(pending, later)
            self._ops[0:0] = pending
        else:
            self._ops.insert(0, op)
        self._notify()

    def clear(self) -> List[Operation]:
        """Drop every pending operation and return them."""
        dropped = self._ops
        self._ops = []
        self._notify()
        return dropped

    def get(self, key: EntityKey) -> Optional[Operation]:
        for op in self._ops:
            if op.key == key:
                return op
        return None

    def snapshot(self) -> List[Operation]:
        return list(self._ops)

    def _notify(self) -> None:
        self._events.queue_length_changed(len(self._ops))

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    def __iter__(self) -> Iterator[Operation]:
        return iter(list(self._ops))
