"""Tests for the NDJSON save journal."""

import io
import json

import pytest

from savequeue.engine.service import SaveService
from savequeue.errors import ClientError, ConflictError
from savequeue.logs.ndjson import EventType, SaveJournal
from savequeue.operations.model import OperationType, make_operation


def read_lines(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestSaveJournal:
    """Tests for SaveJournal as a listener."""

    def test_path_layout(self, tmp_path):
        journal = SaveJournal("story-1", base_dir=str(tmp_path))

        assert journal.path == tmp_path / "stories" / "story-1" / "save-journal.ndjson"

    def test_writes_events(self, tmp_path):
        journal = SaveJournal("story-1", base_dir=str(tmp_path))
        op = make_operation(OperationType.MAP_DELETE, "map-9", "story-1")

        journal.on_save_status_change(True)
        journal.on_operation_failed(op, ClientError("gone", 404))
        journal.on_conflict("srv", "cli")
        journal.close()

        lines = read_lines(journal.path)
        assert [line["type"] for line in lines] == ["save.status", "operation.failed", "conflict"]
        assert all(line["story"] == "story-1" for line in lines)
        failed = lines[1]["payload"]
        assert failed["operation"]["entity_id"] == "map-9"
        assert failed["error"] == "ClientError"
        assert failed["status"] == 404
        assert lines[2]["payload"] == {"server_updated_at": "srv", "client_updated_at": "cli"}

    def test_queue_length_counted_but_not_written(self, tmp_path):
        journal = SaveJournal("story-1", base_dir=str(tmp_path))

        journal.on_queue_length_change(3)
        journal.on_error(RuntimeError("boom"))
        journal.close()

        lines = read_lines(journal.path)
        assert [line["type"] for line in lines] == ["error"]
        assert journal.summary.event_counts == {"queue.length": 1, "error": 1}

    def test_record_queue_length(self, tmp_path):
        stream = io.StringIO()
        journal = SaveJournal("story-1", base_dir=str(tmp_path), stream=stream, record_queue_length=True)

        journal.on_queue_length_change(2)
        journal.close()

        echoed = json.loads(stream.getvalue())
        assert echoed["type"] == EventType.QUEUE_LENGTH.value
        assert echoed["payload"] == {"length": 2}

    def test_summary_file(self, tmp_path):
        journal = SaveJournal("story-1", base_dir=str(tmp_path))
        journal.on_conflict(None, None)
        journal.on_error(RuntimeError("boom"))
        journal.close()

        summary = json.loads(journal.summary_path.read_text())
        assert summary["conflicts"] == 1
        assert summary["errors"] == 1
        assert summary["total_events"] == 2

    @pytest.mark.asyncio
    async def test_attached_to_service(self, tmp_path, store):
        journal = SaveJournal("story-1", base_dir=str(tmp_path))
        service = SaveService(store, listeners=[journal])
        store.fail("n1", ConflictError(server_updated_at="srv", client_updated_at="cli"))

        await service.queue_save(make_operation(OperationType.NODE_UPDATE, "n1", "story-1", {"title": "T"}))
        journal.close()

        types = [line["type"] for line in read_lines(journal.path)]
        assert types == ["save.status", "operation.failed", "conflict", "save.status"]
        assert journal.summary.failed_operations == 1
