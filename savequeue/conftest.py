"""Shared fixtures for savequeue tests."""

import asyncio
import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from savequeue.engine.service import SaveService
from savequeue.errors import ConflictError
from savequeue.operations.model import Operation
from savequeue.store.base import WriteResult


class RecordingStore:
    """In-memory StoreAdapter that records calls and fails on demand.

    ``fail(entity_id, *errors)`` makes the next attempts for that entity
    raise the given errors in order. ``gate`` holds every write until set.
    """

    def __init__(self):
        self.attempts: List[Tuple[str, str, Any]] = []
        self.executed: List[Operation] = []
        self.failures: Dict[str, List[BaseException]] = {}
        self.stamps: Dict[str, str] = {}
        self.gate: Optional[asyncio.Event] = None
        self.server_updated_at = "2024-01-01T00:00:00Z"
        self.documents: Dict[str, Dict[str, Any]] = {}
        self._revision = 0

    def fail(self, entity_id: str, *errors: BaseException) -> None:
        self.failures.setdefault(entity_id, []).extend(errors)

    def attempts_for(self, entity_id: str) -> int:
        return sum(1 for _, eid, _ in self.attempts if eid == entity_id)

    async def execute(self, operation: Operation) -> WriteResult:
        self.attempts.append((operation.type.value, operation.entity_id, copy.deepcopy(operation.data)))
        if self.gate is not None:
            await self.gate.wait()
        pending = self.failures.get(operation.entity_id)
        if pending:
            raise pending.pop(0)
        self.executed.append(operation)
        return WriteResult(updated_at=self.stamps.get(operation.entity_id))

    async def save_document(self, story_id, payload, last_known_updated_at=None, force=False):
        if not force and last_known_updated_at != self.server_updated_at:
            raise ConflictError(
                server_updated_at=self.server_updated_at,
                client_updated_at=last_known_updated_at,
            )
        self._revision += 1
        self.server_updated_at = f"2024-01-02T00:00:{self._revision:02d}Z"
        self.documents[story_id] = payload
        return WriteResult(updated_at=self.server_updated_at)


class RecordingListener:
    """SaveQueueListener that keeps every notification."""

    def __init__(self):
        self.statuses: List[bool] = []
        self.lengths: List[int] = []
        self.conflicts: List[Tuple[Optional[str], Optional[str]]] = []
        self.errors: List[BaseException] = []
        self.failed: List[Tuple[Operation, BaseException]] = []

    def on_save_status_change(self, is_saving):
        self.statuses.append(is_saving)

    def on_queue_length_change(self, length):
        self.lengths.append(length)

    def on_conflict(self, server_updated_at, client_updated_at):
        self.conflicts.append((server_updated_at, client_updated_at))

    def on_error(self, error):
        self.errors.append(error)

    def on_operation_failed(self, operation, error):
        self.failed.append((operation, error))


@pytest.fixture
def store():
    """Provide a fresh RecordingStore."""
    return RecordingStore()


@pytest.fixture
def listener():
    """Provide a fresh RecordingListener."""
    return RecordingListener()


@pytest_asyncio.fixture
async def service(store, listener):
    """Provide a SaveService wired to the recording store and listener."""
    svc = SaveService(store, listeners=[listener])
    yield svc
    await svc.close()
