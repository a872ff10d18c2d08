"""Store adapters for savequeue."""

from .base import Handler, HandlerRegistry, StoreAdapter, WriteResult
from .http import HttpStoreAdapter, Route, ROUTES, extract_updated_at
from .local import LocalDocumentStore

__all__ = [
    # Protocol
    "Handler",
    "HandlerRegistry",
    "StoreAdapter",
    "WriteResult",
    # HTTP
    "HttpStoreAdapter",
    "Route",
    "ROUTES",
    "extract_updated_at",
    # Local
    "LocalDocumentStore",
]
