"""
savequeue

Client-side save queue for a collaborative story editor. Coalesces entity
mutations per entity, writes them to the backend one at a time in order,
retries transient failures and surfaces conflicts and auth failures.
"""

# Configuration
from .config import SaveQueueConfig, StorageMode

# Errors
from .errors import (
    SaveQueueError,
    StoreError,
    AuthError,
    ConflictError,
    ClientError,
    UnsupportedOperationError,
    TransientError,
    ErrorClass,
    ErrorClassifier,
)

# Operations
from .operations import (
    EntityType,
    Operation,
    OperationKind,
    OperationType,
    CoalesceOutcome,
    coalesce,
    make_operation,
    diff_paragraphs,
)

# Engine
from .engine import (
    CallbackListener,
    SaveQueueListener,
    SaveQueue,
    DebounceGateway,
    VersionTracker,
    Processor,
    RetryPolicy,
    SaveService,
    SaveStatus,
)

# Stores
from .store import (
    HandlerRegistry,
    StoreAdapter,
    WriteResult,
    HttpStoreAdapter,
    LocalDocumentStore,
)

# Logging
from .logs import SaveJournal

__all__ = [
    # Configuration
    'SaveQueueConfig',
    'StorageMode',
    # Errors
    'SaveQueueError',
    'StoreError',
    'AuthError',
    'ConflictError',
    'ClientError',
    'UnsupportedOperationError',
    'TransientError',
    'ErrorClass',
    'ErrorClassifier',
    # Operations
    'EntityType',
    'Operation',
    'OperationKind',
    'OperationType',
    'CoalesceOutcome',
    'coalesce',
    'make_operation',
    'diff_paragraphs',
    # Engine
    'CallbackListener',
    'SaveQueueListener',
    'SaveQueue',
    'DebounceGateway',
    'VersionTracker',
    'Processor',
    'RetryPolicy',
    'SaveService',
    'SaveStatus',
    # Stores
    'HandlerRegistry',
    'StoreAdapter',
    'WriteResult',
    'HttpStoreAdapter',
    'LocalDocumentStore',
    # Logging
    'SaveJournal',
]

__version__ = '1.0.0'
