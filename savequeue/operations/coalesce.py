"""Coalescing of operations that target the same entity.

At most one operation per entity key sits in the queue. A newly submitted
operation is merged into, replaces, or is swallowed by the queued one:

1. queued insert + update  -> merge into the insert
2. queued insert + delete  -> both vanish
3. queued update + update  -> merge into the queued update
4. queued delete + anything -> new operation is discarded
5. anything else           -> queued entry removed, new one appended
"""

from enum import Enum
from typing import Any, List, Optional

from .model import Operation, OperationKind


class CoalesceOutcome(str, Enum):
    """What happened to a submitted operation."""

    APPENDED = "appended"
    MERGED = "merged"
    ANNIHILATED = "annihilated"
    SWALLOWED = "swallowed"
    REPLACED = "replaced"

    @property
    def changes_length(self) -> bool:
        """Whether the queue length changed as a result."""
        return self in (CoalesceOutcome.APPENDED, CoalesceOutcome.ANNIHILATED)


def shallow_merge(old: Any, new: Any) -> Any:
    """Merge two operation payloads.

    Two dicts merge key by key with the newer value winning. Otherwise the
    newer payload replaces the older one, unless it is None.
    """
    if isinstance(old, dict) and isinstance(new, dict):
        return {**old, **new}
    if new is not None:
        return new
    return old


def find_index(queue: List[Operation], op: Operation) -> Optional[int]:
    """Index of the queued operation with the same entity key, if any."""
    key = op.key
    for index, existing in enumerate(queue):
        if existing.key == key:
            return index
    return None


def merge_into(target: Operation, source: Operation) -> None:
    """Fold ``source`` into ``target`` in place, keeping target's type."""
    target.data = shallow_merge(target.data, source.data)
    target.timestamp = source.timestamp


def coalesce(queue: List[Operation], op: Operation) -> CoalesceOutcome:
    """Submit ``op`` to ``queue``, applying the coalescing rules in place.

    Args:
        queue: Pending operations in processing order
        op: Newly submitted operation

    Returns:
        The CoalesceOutcome describing the change made to the queue
    """
    index = find_index(queue, op)
    if index is None:
        queue.append(op)
        return CoalesceOutcome.APPENDED

    existing = queue[index]

    if existing.is_kind(OperationKind.INSERT) and op.is_kind(OperationKind.UPDATE):
        merge_into(existing, op)
        return CoalesceOutcome.MERGED

    if existing.is_kind(OperationKind.INSERT) and op.is_kind(OperationKind.DELETE):
        del queue[index]
        return CoalesceOutcome.ANNIHILATED

    if existing.is_kind(OperationKind.UPDATE) and op.is_kind(OperationKind.UPDATE):
        merge_into(existing, op)
        return CoalesceOutcome.MERGED

    if existing.is_kind(OperationKind.DELETE):
        return CoalesceOutcome.SWALLOWED

    del queue[index]
    queue.append(op)
    return CoalesceOutcome.REPLACED
