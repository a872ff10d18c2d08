"""Error types and failure classification for savequeue.

Store adapters raise the structured errors below; the processor only ever
looks at their type and typed status field to decide what to do next.
"""

import asyncio
from enum import Enum
from typing import Optional

import httpx


class SaveQueueError(Exception):
    """Base error for all savequeue errors."""
    pass


class StoreError(SaveQueueError):
    """A store adapter call failed.

    Carries the HTTP-like status of the failure when one is known.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthError(StoreError):
    """The session is no longer valid. Fatal for the whole queue."""

    def __init__(self, message: str = "Unauthorized", status: Optional[int] = 401):
        super().__init__(message, status)


class ConflictError(StoreError):
    """The server copy of the document moved past the client's stamp."""

    def __init__(
        self,
        message: str = "Version conflict",
        server_updated_at: Optional[str] = None,
        client_updated_at: Optional[str] = None,
    ):
        super().__init__(message, 409)
        self.server_updated_at = server_updated_at
        self.client_updated_at = client_updated_at


class ClientError(StoreError):
    """The request was rejected and will be rejected again on retry."""

    def __init__(self, message: str, status: Optional[int] = 400):
        super().__init__(message, status)


class UnsupportedOperationError(ClientError):
    """No handler is registered for an operation's entity type and kind."""

    def __init__(self, operation_type: str):
        super().__init__(f"No store handler for operation type '{operation_type}'", None)
        self.operation_type = operation_type


class TransientError(StoreError):
    """Server or network failure that may succeed on retry."""
    pass


class ErrorClass(str, Enum):
    """Classification of store failures, in processor priority order."""

    AUTH = "auth"
    CONFLICT = "conflict"
    CLIENT = "client"
    TRANSIENT = "transient"


class ErrorClassifier:
    """Classifies store failures for the processor.

    Typed errors are classified by type first, then by status. Raw
    ``httpx.HTTPStatusError`` instances are classified by their response
    status. Anything else is treated as transient.
    """

    AUTH_STATUS_CODES = {401}
    CONFLICT_STATUS_CODES = {409}
    TRANSIENT_EXCEPTIONS = (
        TimeoutError,
        ConnectionError,
        asyncio.TimeoutError,
        httpx.TransportError,
    )

    def classify(self, error: BaseException) -> ErrorClass:
        """Classify a failure.

        Args:
            error: The exception raised by the store adapter

        Returns:
            The ErrorClass the processor should act on
        """
        if isinstance(error, AuthError):
            return ErrorClass.AUTH
        if isinstance(error, ConflictError):
            return ErrorClass.CONFLICT
        if isinstance(error, ClientError):
            return ErrorClass.CLIENT
        if isinstance(error, TransientError):
            return ErrorClass.TRANSIENT

        if isinstance(error, StoreError):
            return self.classify_status(error.status)

        if isinstance(error, httpx.HTTPStatusError):
            return self.classify_status(error.response.status_code)

        if isinstance(error, self.TRANSIENT_EXCEPTIONS):
            return ErrorClass.TRANSIENT

        return ErrorClass.TRANSIENT

    def classify_status(self, status: Optional[int]) -> ErrorClass:
        """Classify an HTTP-like status code.

        Only 401 invalidates the session. Every other 4xx, 403 and 429
        included, is rejected per entity and dropped. Missing and 5xx
        statuses are transient.
        """
        if status is None:
            return ErrorClass.TRANSIENT
        if status in self.AUTH_STATUS_CODES:
            return ErrorClass.AUTH
        if status in self.CONFLICT_STATUS_CODES:
            return ErrorClass.CONFLICT
        if 400 <= status < 500:
            return ErrorClass.CLIENT
        return ErrorClass.TRANSIENT
