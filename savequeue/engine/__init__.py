"""Save queue engine: queue, debounce, processing and the service facade."""

from .events import CallbackListener, SaveEvents, SaveQueueListener
from .queue import SaveQueue
from .debounce import DebounceGateway
from .version import STAMPED_ENTITY_TYPES, VersionTracker
from .processor import AUTH_FAILURE_MESSAGE, Processor, RetryPolicy
from .entities import EntitySaves, strip_node_fields
from .service import SaveService, SaveStatus

__all__ = [
    # Events
    "CallbackListener",
    "SaveEvents",
    "SaveQueueListener",
    # Queue and processing
    "SaveQueue",
    "DebounceGateway",
    "STAMPED_ENTITY_TYPES",
    "VersionTracker",
    "AUTH_FAILURE_MESSAGE",
    "Processor",
    "RetryPolicy",
    # Service
    "EntitySaves",
    "strip_node_fields",
    "SaveService",
    "SaveStatus",
]
