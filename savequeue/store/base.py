"""Store adapter protocol and handler registry.

The save queue never talks to a backend directly. It hands each operation
to a StoreAdapter and only cares whether the call succeeded, and if it did,
whether it returned a fresh document stamp.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from ..errors import UnsupportedOperationError
from ..operations.model import EntityType, Operation, OperationKind, OperationType


@dataclass
class WriteResult:
    """Outcome of a successful store call."""

    updated_at: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Operation], Awaitable[Optional[WriteResult]]]


class StoreAdapter(Protocol):
    """Protocol that every backend used by the save queue must follow."""

    async def execute(self, operation: Operation) -> WriteResult:
        """Persist one operation.

        Raises:
            StoreError subclasses describing why the write failed
        """
        ...

    async def save_document(
        self,
        story_id: str,
        payload: Dict[str, Any],
        last_known_updated_at: Optional[str] = None,
        force: bool = False,
    ) -> WriteResult:
        """Persist a whole document.

        Unless ``force`` is set the backend must reject the write with a
        ConflictError when its copy is newer than ``last_known_updated_at``.
        """
        ...


class HandlerRegistry:
    """Routes operations to handlers keyed by (entity type, kind)."""

    def __init__(self) -> None:
        self._handlers: Dict[Tuple[EntityType, OperationKind], Handler] = {}

    def register(self, entity_type: EntityType, kind: OperationKind, handler: Handler) -> None:
        self._handlers[(EntityType(entity_type), OperationKind(kind))] = handler

    def register_type(self, op_type: OperationType, handler: Handler) -> None:
        self.register(op_type.entity_type, op_type.kind, handler)

    def handler(self, entity_type: EntityType, kind: OperationKind):
        """Decorator form of register()."""
        def decorator(fn: Handler) -> Handler:
            self.register(entity_type, kind, fn)
            return fn
        return decorator

    def resolve(self, operation: Operation) -> Handler:
        try:
            return self._handlers[(operation.entity_type, operation.kind)]
        except KeyError:
            raise UnsupportedOperationError(operation.type.value) from None

    def __contains__(self, op_type: OperationType) -> bool:
        return (op_type.entity_type, op_type.kind) in self._handlers

    async def execute(self, operation: Operation) -> WriteResult:
        result = await self.resolve(operation)(operation)
        return result if result is not None else WriteResult()
