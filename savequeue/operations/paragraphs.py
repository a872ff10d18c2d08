"""Paragraph diffing for message revisions.

Paragraph content is saved separately from message metadata: an edited
paragraph list is compared against the list the editor started from and
turned into paragraph insert/update/delete operations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from .model import Operation, OperationType, make_operation

# Fields whose change makes a paragraph dirty
COMPARED_FIELDS = ("body", "contentSchema", "state")


@dataclass
class ParagraphDiff:
    """Result of comparing two paragraph lists."""

    to_create: List[Mapping[str, Any]] = field(default_factory=list)
    to_update: List[Mapping[str, Any]] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    def counts(self) -> Dict[str, int]:
        return {
            "created": len(self.to_create),
            "updated": len(self.to_update),
            "deleted": len(self.to_delete),
        }


def diff_paragraphs(
    original: Sequence[Mapping[str, Any]],
    new: Sequence[Mapping[str, Any]],
) -> ParagraphDiff:
    """Compare paragraph lists by id.

    New ids are created, ids that disappeared are deleted, and surviving
    ids are updated when any of COMPARED_FIELDS differs. Output follows the
    order of ``new`` (creates and updates) and ``original`` (deletes).
    """
    original_by_id = {p["id"]: p for p in original}
    new_ids = {p["id"] for p in new}

    diff = ParagraphDiff()
    for para in new:
        before = original_by_id.get(para["id"])
        if before is None:
            diff.to_create.append(para)
        elif any(before.get(f) != para.get(f) for f in COMPARED_FIELDS):
            diff.to_update.append(para)

    diff.to_delete = [p["id"] for p in original if p["id"] not in new_ids]
    return diff


def _payload(revision_id: str, para: Mapping[str, Any], sort_order: int) -> Dict[str, Any]:
    state = para.get("state")
    return {
        "revisionId": revision_id,
        "id": para["id"],
        "body": para.get("body"),
        "contentSchema": para.get("contentSchema"),
        "state": state.upper() if isinstance(state, str) else state,
        "sortOrder": sort_order,
    }


def paragraph_operations(
    story_id: str,
    revision_id: str,
    diff: ParagraphDiff,
    new: Sequence[Mapping[str, Any]],
) -> List[Operation]:
    """Build the operations that apply ``diff``.

    ``sortOrder`` is the paragraph's position in ``new``.
    """
    positions = {p["id"]: i for i, p in enumerate(new)}
    ops = []
    for para in diff.to_create:
        ops.append(make_operation(
            OperationType.PARAGRAPH_INSERT, para["id"], story_id,
            _payload(revision_id, para, positions[para["id"]]),
        ))
    for para in diff.to_update:
        ops.append(make_operation(
            OperationType.PARAGRAPH_UPDATE, para["id"], story_id,
            _payload(revision_id, para, positions[para["id"]]),
        ))
    for para_id in diff.to_delete:
        ops.append(make_operation(
            OperationType.PARAGRAPH_DELETE, para_id, story_id,
            {"revisionId": revision_id},
        ))
    return ops
