"""Operation model for pending save operations.

An operation is one pending mutation of one entity. Its ``type`` is the
cross product of an entity type and a kind; the queue coalesces operations
by entity key ``(entity_type, entity_id)``.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class EntityType(str, Enum):
    """Category of entity an operation targets."""

    MESSAGE = "message"
    PARAGRAPH = "paragraph"
    NODE = "node"
    CHAPTER = "chapter"
    CHARACTER = "character"
    CONTEXT = "context"
    CONTEXT_STATES = "context-states"
    MAP = "map"
    LANDMARK = "landmark"
    LANDMARK_STATE = "landmark-state"
    FLEET = "fleet"
    FLEET_MOVEMENT = "fleet-movement"
    HYPERLANE = "hyperlane"
    STORY_SETTINGS = "story-settings"
    STORY = "story"


class OperationKind(str, Enum):
    """What an operation does to its entity.

    WRITE covers one-shot writes that are not a step in an entity's
    create/update/delete lifecycle (reorders, bulk updates, settings).
    """

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    WRITE = "write"


class OperationType(str, Enum):
    """Concrete operation types understood by store adapters."""

    MESSAGE_INSERT = "message-insert"
    MESSAGE_UPDATE = "message-update"
    MESSAGE_DELETE = "message-delete"
    MESSAGE_REORDER = "message-reorder"
    PARAGRAPH_INSERT = "paragraph-insert"
    PARAGRAPH_UPDATE = "paragraph-update"
    PARAGRAPH_DELETE = "paragraph-delete"
    CHAPTER_UPDATE = "chapter-update"
    CHAPTER_DELETE = "chapter-delete"
    CHARACTER_INSERT = "character-insert"
    CHARACTER_UPDATE = "character-update"
    CHARACTER_DELETE = "character-delete"
    CONTEXT_INSERT = "context-insert"
    CONTEXT_UPDATE = "context-update"
    CONTEXT_DELETE = "context-delete"
    CONTEXT_STATES = "context-states"
    MAP_INSERT = "map-insert"
    MAP_UPDATE = "map-update"
    MAP_DELETE = "map-delete"
    LANDMARK_INSERT = "landmark-insert"
    LANDMARK_UPDATE = "landmark-update"
    LANDMARK_DELETE = "landmark-delete"
    LANDMARK_STATE = "landmark-state"
    NODE_INSERT = "node-insert"
    NODE_UPDATE = "node-update"
    NODE_DELETE = "node-delete"
    NODE_BULK_UPDATE = "node-bulk-update"
    FLEET_INSERT = "fleet-insert"
    FLEET_UPDATE = "fleet-update"
    FLEET_DELETE = "fleet-delete"
    FLEET_MOVEMENT_INSERT = "fleet-movement-insert"
    FLEET_MOVEMENT_UPDATE = "fleet-movement-update"
    FLEET_MOVEMENT_DELETE = "fleet-movement-delete"
    HYPERLANE_INSERT = "hyperlane-insert"
    HYPERLANE_UPDATE = "hyperlane-update"
    HYPERLANE_DELETE = "hyperlane-delete"
    STORY_SETTINGS = "story-settings"
    FULL_STORY = "full-story"

    @property
    def entity_type(self) -> EntityType:
        return _TYPE_TABLE[self][0]

    @property
    def kind(self) -> OperationKind:
        return _TYPE_TABLE[self][1]

    @classmethod
    def for_entity(cls, entity_type: EntityType, kind: OperationKind) -> "OperationType":
        """Look up the operation type for an entity type and kind.

        Raises:
            KeyError: if the pair is not a known operation type
        """
        return _REVERSE_TABLE[(EntityType(entity_type), OperationKind(kind))]


_WRITE_TYPES = {
    OperationType.MESSAGE_REORDER: EntityType.MESSAGE,
    OperationType.NODE_BULK_UPDATE: EntityType.NODE,
    OperationType.CONTEXT_STATES: EntityType.CONTEXT_STATES,
    OperationType.LANDMARK_STATE: EntityType.LANDMARK_STATE,
    OperationType.STORY_SETTINGS: EntityType.STORY_SETTINGS,
    OperationType.FULL_STORY: EntityType.STORY,
}


def _build_type_table():
    table = {}
    for op_type in OperationType:
        if op_type in _WRITE_TYPES:
            table[op_type] = (_WRITE_TYPES[op_type], OperationKind.WRITE)
            continue
        entity, _, kind = op_type.value.rpartition("-")
        table[op_type] = (EntityType(entity), OperationKind(kind))
    return table


_TYPE_TABLE = _build_type_table()
# Several write types share an entity type with CRUD types, so the reverse
# lookup is keyed on the full pair.
_REVERSE_TABLE = {pair: op_type for op_type, pair in _TYPE_TABLE.items()}


EntityKey = Tuple[EntityType, str]


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class Operation:
    """A pending save operation.

    ``data`` and ``timestamp`` are mutated in place when later operations
    for the same entity are merged into this one.
    """

    type: OperationType
    entity_id: str
    story_id: str
    data: Any = None
    timestamp: int = field(default_factory=now_ms)
    retry_count: int = 0
    id: str = ""

    def __post_init__(self):
        self.type = OperationType(self.type)
        if not self.entity_id:
            raise ValueError("Operation requires an entity_id")
        if not self.id:
            self.id = f"{self.entity_type.value}-{self.entity_id}-{self.timestamp}"

    @property
    def entity_type(self) -> EntityType:
        return self.type.entity_type

    @property
    def kind(self) -> OperationKind:
        return self.type.kind

    @property
    def key(self) -> EntityKey:
        """Entity key used for coalescing."""
        return (self.entity_type, self.entity_id)

    def is_kind(self, kind: OperationKind) -> bool:
        return self.kind == kind

    def describe(self) -> str:
        """Short human readable label for log lines."""
        return f"{self.type.value} {self.entity_type.value}:{self.entity_id}"

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "id": self.id,
            "type": self.type.value,
            "entity_type": self.entity_type.value,
            "entity_id": self.entity_id,
            "story_id": self.story_id,
            "data": self.data,
            "timestamp": self.timestamp,
            "retry_count": self.retry_count,
        }


def make_operation(
    op_type: OperationType,
    entity_id: str,
    story_id: str,
    data: Any = None,
    timestamp: Optional[int] = None,
) -> Operation:
    """Create an operation stamped with the current time."""
    return Operation(
        type=op_type,
        entity_id=entity_id,
        story_id=story_id,
        data=data,
        timestamp=timestamp if timestamp is not None else now_ms(),
    )
