"""Tests for the per-entity save helpers.

Operations are inspected in the queue before the worker gets a chance to
run, so nothing here awaits.
"""

import pytest

from savequeue.engine.entities import REORDER_BATCH_ID, strip_node_fields
from savequeue.engine.service import SaveService
from savequeue.operations.model import EntityType, OperationKind, OperationType


@pytest.fixture
def saves(store):
    """A SaveService used outside a running loop, so the queue is never drained."""
    return SaveService(store)


def queued(svc):
    return [(op.type, op.entity_id, op.data) for op in svc.queue]


class TestMessages:
    """Tests for message helpers."""

    def test_insert_carries_after_message_id(self, saves):
        saves.save_message("s1", "m2", {"content": "hi", "sceneId": "sc1"},
                           OperationKind.INSERT, after_message_id="m1")

        assert queued(saves) == [(
            OperationType.MESSAGE_INSERT, "m2",
            {"content": "hi", "sceneId": "sc1", "afterMessageId": "m1"},
        )]

    def test_delete_has_no_payload(self, saves):
        saves.save_message("s1", "m1", {"content": "bye"}, OperationKind.DELETE)

        assert queued(saves) == [(OperationType.MESSAGE_DELETE, "m1", None)]

    def test_update_without_debounce_is_queued(self, saves):
        saves.save_message("s1", "m1", {"content": "x"}, "update", debounce=False)

        assert queued(saves) == [(OperationType.MESSAGE_UPDATE, "m1", {"content": "x"})]

    def test_reorder_replaces_pending_reorder(self, saves):
        saves.reorder_messages("s1", [{"messageId": "a", "sortOrder": 0}])
        saves.reorder_messages("s1", [{"messageId": "b", "sortOrder": 0}])

        ops = saves.queue.snapshot()
        assert len(ops) == 1
        assert ops[0].entity_id == REORDER_BATCH_ID
        assert ops[0].data == {"items": [{"messageId": "b", "sortOrder": 0}]}

    def test_save_paragraphs_counts(self, saves):
        original = [
            {"id": "p1", "body": "one", "contentSchema": None, "state": "ai"},
            {"id": "p2", "body": "two", "contentSchema": None, "state": "ai"},
        ]
        new = [
            {"id": "p1", "body": "one!", "contentSchema": None, "state": "ai"},
            {"id": "p3", "body": "three", "contentSchema": None, "state": "human"},
        ]

        counts = saves.save_paragraphs("s1", "rev-1", original, new)

        assert counts == {"created": 1, "updated": 1, "deleted": 1}
        assert sorted(op.type.value for op in saves.queue) == [
            "paragraph-delete", "paragraph-insert", "paragraph-update",
        ]


class TestNodes:
    """Tests for story hierarchy helpers."""

    def test_local_fields_stripped(self):
        node = {"id": "n1", "title": "T", "isOpen": True, "wordCount": 10, "children": []}
        assert strip_node_fields(node) == {"id": "n1", "title": "T"}

    def test_save_node_update(self, saves):
        saves.save_node("s1", "n1", {"id": "n1", "type": "scene", "title": "T", "isOpen": True},
                        OperationKind.UPDATE)

        assert queued(saves) == [
            (OperationType.NODE_UPDATE, "n1", {"id": "n1", "type": "scene", "title": "T"})
        ]

    def test_save_node_delete_keeps_type(self, saves):
        saves.save_node("s1", "n1", {"id": "n1", "type": "chapter", "title": "T"},
                        OperationKind.DELETE)

        assert queued(saves) == [(OperationType.NODE_DELETE, "n1", {"type": "chapter"})]

    def test_bulk_update(self, saves):
        saves.save_nodes_bulk("s1", [{"id": "a", "isOpen": True}, {"id": "b"}])

        op = saves.queue.snapshot()[0]
        assert op.type == OperationType.NODE_BULK_UPDATE
        assert op.entity_id.startswith("bulk-")
        assert op.data == [{"id": "a"}, {"id": "b"}]

    def test_chapter_update_and_delete(self, saves):
        saves.save_chapter("s1", "ch1", {"title": "One"})
        saves.delete_chapter("s1", "ch1")

        assert queued(saves) == [(OperationType.CHAPTER_DELETE, "ch1", None)]

    def test_story_settings(self, saves):
        saves.save_story_settings("s1", {"genre": "space opera"})

        op = saves.queue.snapshot()[0]
        assert op.type == OperationType.STORY_SETTINGS
        assert op.entity_id.startswith("settings-")


class TestCharactersAndContext:
    """Tests for character and context item helpers."""

    def test_character_lifecycle_collapses(self, saves):
        saves.create_character("s1", {"id": "c1", "name": "Ada"})
        saves.update_character("s1", "c1", {"name": "Ada L."})

        assert queued(saves) == [(OperationType.CHARACTER_INSERT, "c1", {"id": "c1", "name": "Ada L."})]

        saves.delete_character("s1", "c1")
        assert queued(saves) == []

    def test_context_item_helpers(self, saves):
        saves.update_context_item("s1", "ctx1", {"name": "Lore"})
        saves.delete_context_item("s1", "ctx2")

        assert [op.type for op in saves.queue] == [
            OperationType.CONTEXT_UPDATE, OperationType.CONTEXT_DELETE,
        ]

    def test_context_states(self, saves):
        saves.save_context_states("s1", [{"characterId": "c1", "enabled": True}], [])

        op = saves.queue.snapshot()[0]
        assert op.type == OperationType.CONTEXT_STATES
        assert op.data == {
            "characterStates": [{"characterId": "c1", "enabled": True}],
            "contextItemStates": [],
        }


class TestMaps:
    """Tests for map and map object helpers."""

    def test_map_objects_carry_map_id(self, saves):
        saves.create_landmark("s1", "map-1", {"id": "lm1", "name": "Port"})
        saves.delete_fleet("s1", "map-1", "f1")
        saves.update_hyperlane("s1", "map-1", "h1", {"speed": 2})

        assert queued(saves) == [
            (OperationType.LANDMARK_INSERT, "lm1", {"id": "lm1", "name": "Port", "mapId": "map-1"}),
            (OperationType.FLEET_DELETE, "f1", {"mapId": "map-1"}),
            (OperationType.HYPERLANE_UPDATE, "h1", {"speed": 2, "mapId": "map-1"}),
        ]

    def test_fleet_movement_carries_fleet_id(self, saves):
        saves.create_fleet_movement("s1", "map-1", "f1", {"id": "mv1", "x": 3})

        assert queued(saves) == [(
            OperationType.FLEET_MOVEMENT_INSERT, "mv1",
            {"id": "mv1", "x": 3, "mapId": "map-1", "fleetId": "f1"},
        )]

    def test_landmark_state_one_entry_per_field(self, saves):
        saves.save_landmark_state("s1", "map-1", "lm1", "m1", "owner", "red")
        saves.save_landmark_state("s1", "map-1", "lm1", "m2", "owner", "blue")
        saves.save_landmark_state("s1", "map-1", "lm1", "m2", "status", "ruined")

        ops = saves.queue.snapshot()
        assert [op.entity_id for op in ops] == ["map-1-lm1-owner", "map-1-lm1-status"]
        assert ops[0].data["value"] == "blue"
        assert ops[0].entity_type == EntityType.LANDMARK_STATE

    def test_map_lifecycle(self, saves):
        saves.create_map("s1", {"id": "map-1", "name": "Galaxy"})
        saves.update_map("s1", "map-1", {"name": "Galaxy II"})

        assert queued(saves) == [
            (OperationType.MAP_INSERT, "map-1", {"id": "map-1", "name": "Galaxy II"})
        ]
