"""Operation model and coalescing rules for savequeue."""

from .model import (
    EntityKey,
    EntityType,
    Operation,
    OperationKind,
    OperationType,
    make_operation,
    now_ms,
)
from .coalesce import (
    CoalesceOutcome,
    coalesce,
    find_index,
    shallow_merge,
)
from .paragraphs import (
    ParagraphDiff,
    diff_paragraphs,
    paragraph_operations,
)

__all__ = [
    # Model
    "EntityKey",
    "EntityType",
    "Operation",
    "OperationKind",
    "OperationType",
    "make_operation",
    "now_ms",
    # Coalescing
    "CoalesceOutcome",
    "coalesce",
    "find_index",
    "shallow_merge",
    # Paragraphs
    "ParagraphDiff",
    "diff_paragraphs",
    "paragraph_operations",
]
