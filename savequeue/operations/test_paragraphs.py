"""Tests for paragraph diffing."""

from savequeue.operations.model import OperationType
from savequeue.operations.paragraphs import diff_paragraphs, paragraph_operations


ORIGINAL = [
    {"id": "p1", "body": "It was a dark night.", "contentSchema": None, "state": "draft"},
    {"id": "p2", "body": "The wind howled.", "contentSchema": None, "state": "draft"},
    {"id": "p3", "body": "Gone soon.", "contentSchema": None, "state": "draft"},
]


class TestDiffParagraphs:
    """Tests for diff_paragraphs."""

    def test_no_changes(self):
        diff = diff_paragraphs(ORIGINAL, [dict(p) for p in ORIGINAL])
        assert diff.is_empty
        assert diff.counts() == {"created": 0, "updated": 0, "deleted": 0}

    def test_create_update_delete(self):
        new = [
            {"id": "p1", "body": "It was a dark night.", "contentSchema": None, "state": "draft"},
            {"id": "p2", "body": "The wind screamed.", "contentSchema": None, "state": "draft"},
            {"id": "p4", "body": "A door opened.", "contentSchema": None, "state": "draft"},
        ]

        diff = diff_paragraphs(ORIGINAL, new)

        assert [p["id"] for p in diff.to_create] == ["p4"]
        assert [p["id"] for p in diff.to_update] == ["p2"]
        assert diff.to_delete == ["p3"]

    def test_state_change_is_update(self):
        new = [dict(p) for p in ORIGINAL]
        new[0]["state"] = "final"

        diff = diff_paragraphs(ORIGINAL, new)
        assert [p["id"] for p in diff.to_update] == ["p1"]


class TestParagraphOperations:
    """Tests for building paragraph operations."""

    def test_operations_carry_revision_and_sort_order(self):
        new = [
            {"id": "p4", "body": "First now.", "state": "draft"},
            {"id": "p1", "body": "It was a dark night.", "contentSchema": None, "state": "draft"},
        ]
        diff = diff_paragraphs(ORIGINAL, new)

        ops = paragraph_operations("story-1", "rev-1", diff, new)
        by_type = {op.type: op for op in ops}

        insert = by_type[OperationType.PARAGRAPH_INSERT]
        assert insert.entity_id == "p4"
        assert insert.data["revisionId"] == "rev-1"
        assert insert.data["sortOrder"] == 0
        assert insert.data["state"] == "DRAFT"

        deletes = [op for op in ops if op.type == OperationType.PARAGRAPH_DELETE]
        assert sorted(op.entity_id for op in deletes) == ["p2", "p3"]
        assert all(op.data == {"revisionId": "rev-1"} for op in deletes)
