"""NDJSON journal of save queue events.

SaveJournal is a SaveQueueListener that appends one JSON line per event to
``{base_dir}/stories/{story_id}/save-journal.ndjson`` and keeps running
counts, so dropped operations and conflicts can be audited after the fact.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from ..operations.model import Operation


class EventType(str, Enum):
    """Journal event types."""
    SAVE_STATUS = "save.status"
    QUEUE_LENGTH = "queue.length"
    CONFLICT = "conflict"
    ERROR = "error"
    OPERATION_FAILED = "operation.failed"


@dataclass
class JournalEvent:
    """A single journal line."""
    timestamp: str
    event_type: str
    story_id: str
    payload: Dict[str, Any]

    def to_ndjson(self) -> str:
        """Serialize to NDJSON line."""
        data = {
            "ts": self.timestamp,
            "type": self.event_type,
            "story": self.story_id,
            "payload": self.payload,
        }
        return json.dumps(data, separators=(',', ':'), default=str)


@dataclass
class JournalSummary:
    """Running counts for a journal."""
    story_id: str
    total_events: int = 0
    event_counts: Dict[str, int] = field(default_factory=dict)
    conflicts: int = 0
    errors: int = 0
    failed_operations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "story_id": self.story_id,
            "total_events": self.total_events,
            "event_counts": self.event_counts,
            "conflicts": self.conflicts,
            "errors": self.errors,
            "failed_operations": self.failed_operations,
        }


class SaveJournal:
    """NDJSON journal listener for one document.

    Queue length changes are frequent and only written when
    ``record_queue_length`` is set; they are always counted.
    """

    def __init__(
        self,
        story_id: str,
        base_dir: str = ".savequeue",
        stream: Optional[TextIO] = None,
        record_queue_length: bool = False,
    ):
        self.story_id = story_id
        self.stream = stream
        self.record_queue_length = record_queue_length
        self.summary = JournalSummary(story_id=story_id)
        self._file: Optional[TextIO] = None

        log_dir = Path(base_dir) / "stories" / story_id
        log_dir.mkdir(parents=True, exist_ok=True)
        self.path = log_dir / "save-journal.ndjson"
        self.summary_path = log_dir / "save-journal.summary.json"

    def log(self, event_type: EventType, payload: Dict[str, Any], write: bool = True) -> None:
        """Record an event."""
        event = JournalEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event_type=event_type.value,
            story_id=self.story_id,
            payload=payload,
        )
        self._update_summary(event_type)
        if not write:
            return

        line = event.to_ndjson() + "\n"
        if self.stream:
            self.stream.write(line)
            self.stream.flush()
        if self._file is None:
            self._file = open(self.path, 'a', encoding='utf-8')
        self._file.write(line)
        self._file.flush()

    def _update_summary(self, event_type: EventType) -> None:
        self.summary.total_events += 1
        self.summary.event_counts[event_type.value] = (
            self.summary.event_counts.get(event_type.value, 0) + 1
        )
        if event_type == EventType.CONFLICT:
            self.summary.conflicts += 1
        elif event_type == EventType.ERROR:
            self.summary.errors += 1
        elif event_type == EventType.OPERATION_FAILED:
            self.summary.failed_operations += 1

    # SaveQueueListener

    def on_save_status_change(self, is_saving: bool) -> None:
        self.log(EventType.SAVE_STATUS, {"is_saving": is_saving})

    def on_queue_length_change(self, length: int) -> None:
        self.log(EventType.QUEUE_LENGTH, {"length": length}, write=self.record_queue_length)

    def on_conflict(self, server_updated_at: Optional[str], client_updated_at: Optional[str]) -> None:
        self.log(EventType.CONFLICT, {
            "server_updated_at": server_updated_at,
            "client_updated_at": client_updated_at,
        })

    def on_error(self, error: BaseException) -> None:
        self.log(EventType.ERROR, {"error": type(error).__name__, "message": str(error)})

    def on_operation_failed(self, operation: Operation, error: BaseException) -> None:
        self.log(EventType.OPERATION_FAILED, {
            "operation": operation.to_dict(),
            "error": type(error).__name__,
            "message": str(error),
            "status": getattr(error, "status", None),
        })

    def write_summary(self) -> None:
        with open(self.summary_path, 'w', encoding='utf-8') as f:
            json.dump(self.summary.to_dict(), f, indent=2)

    def close(self) -> None:
        """Close the journal and write the final summary."""
        self.write_summary()
        if self._file:
            self._file.close()
            self._file = None
