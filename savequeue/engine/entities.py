"""Typed save helpers for each entity the editor persists.

Mixed into SaveService. Each helper builds the operation for one entity
change and queues it, debouncing updates where the editor produces them at
high frequency.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..operations.model import EntityType, OperationKind, OperationType, make_operation, now_ms
from ..operations.paragraphs import diff_paragraphs, paragraph_operations

# UI-only and computed node fields that never go to the store
NODE_LOCAL_FIELDS = frozenset({
    "isSummarizing",
    "wordCount",
    "messageWordCounts",
    "children",
    "createdAt",
    "updatedAt",
    "isOpen",
})

REORDER_BATCH_ID = "reorder-batch"


def strip_node_fields(node: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in node.items() if k not in NODE_LOCAL_FIELDS}


class EntitySaves:
    """Per-entity convenience methods on top of queue_save()."""

    def _save(self, entity_type: EntityType, kind: OperationKind, entity_id: str,
              story_id: str, data: Any = None, debounce: bool = False):
        op = make_operation(
            OperationType.for_entity(entity_type, kind), entity_id, story_id, data
        )
        if debounce and kind == OperationKind.UPDATE:
            return self.queue_save_debounced(op)
        return self.queue_save(op)

    # Messages

    def save_message(self, story_id: str, message_id: str, message: Mapping[str, Any],
                     operation: OperationKind, debounce: bool = True,
                     after_message_id: Optional[str] = None):
        """Queue a message change.

        Updates are debounced by default since streamed generation rewrites
        the same message many times a second.
        """
        operation = OperationKind(operation)
        data: Any = None
        if operation != OperationKind.DELETE:
            data = dict(message)
            if operation == OperationKind.INSERT and after_message_id is not None:
                data["afterMessageId"] = after_message_id
        return self._save(EntityType.MESSAGE, operation, message_id, story_id, data, debounce)

    def reorder_messages(self, story_id: str, items: Sequence[Mapping[str, Any]]):
        """Queue a reorder of messages, replacing any reorder still pending."""
        return self.queue_save(make_operation(
            OperationType.MESSAGE_REORDER, REORDER_BATCH_ID, story_id,
            {"items": [dict(item) for item in items]},
        ))

    def save_paragraphs(self, story_id: str, revision_id: str,
                        original: Sequence[Mapping[str, Any]],
                        new: Sequence[Mapping[str, Any]]) -> Dict[str, int]:
        """Queue the paragraph changes between two versions of a revision.

        Returns:
            Counts of created, updated and deleted paragraphs
        """
        diff = diff_paragraphs(original, new)
        for op in paragraph_operations(story_id, revision_id, diff, new):
            self.queue_save(op)
        return diff.counts()

    # Story hierarchy

    def save_node(self, story_id: str, node_id: str, node: Optional[Mapping[str, Any]],
                  operation: OperationKind, debounce: bool = False):
        """Queue a change to a book, arc, chapter or scene node.

        Deletes only carry the node's ``type`` so the store can route them.
        """
        operation = OperationKind(operation)
        if operation == OperationKind.DELETE:
            node_type = (node or {}).get("type")
            data = {"type": node_type} if node_type else None
            return self._save(EntityType.NODE, operation, node_id, story_id, data)
        return self._save(
            EntityType.NODE, operation, node_id, story_id, strip_node_fields(node or {}), debounce
        )

    def save_nodes_bulk(self, story_id: str, nodes: Iterable[Mapping[str, Any]]):
        return self.queue_save(make_operation(
            OperationType.NODE_BULK_UPDATE, f"bulk-{now_ms()}", story_id,
            [strip_node_fields(node) for node in nodes],
        ))

    def save_chapter(self, story_id: str, chapter_id: str, updates: Mapping[str, Any],
                     debounce: bool = False):
        return self._save(EntityType.CHAPTER, OperationKind.UPDATE, chapter_id, story_id,
                          dict(updates), debounce)

    def delete_chapter(self, story_id: str, chapter_id: str):
        return self._save(EntityType.CHAPTER, OperationKind.DELETE, chapter_id, story_id)

    def save_story_settings(self, story_id: str, settings: Mapping[str, Any]):
        return self.queue_save(make_operation(
            OperationType.STORY_SETTINGS, f"settings-{now_ms()}", story_id, dict(settings)
        ))

    # Characters and context items

    def create_character(self, story_id: str, character: Mapping[str, Any]):
        return self._save(EntityType.CHARACTER, OperationKind.INSERT, character["id"],
                          story_id, dict(character))

    def update_character(self, story_id: str, character_id: str, character: Mapping[str, Any]):
        return self._save(EntityType.CHARACTER, OperationKind.UPDATE, character_id,
                          story_id, dict(character))

    def delete_character(self, story_id: str, character_id: str):
        return self._save(EntityType.CHARACTER, OperationKind.DELETE, character_id, story_id)

    def create_context_item(self, story_id: str, item: Mapping[str, Any]):
        return self._save(EntityType.CONTEXT, OperationKind.INSERT, item["id"], story_id, dict(item))

    def update_context_item(self, story_id: str, item_id: str, item: Mapping[str, Any]):
        return self._save(EntityType.CONTEXT, OperationKind.UPDATE, item_id, story_id, dict(item))

    def delete_context_item(self, story_id: str, item_id: str):
        return self._save(EntityType.CONTEXT, OperationKind.DELETE, item_id, story_id)

    def save_context_states(self, story_id: str,
                            character_states: List[Mapping[str, Any]],
                            context_item_states: List[Mapping[str, Any]]):
        return self.queue_save(make_operation(
            OperationType.CONTEXT_STATES, f"context-states-{now_ms()}", story_id,
            {
                "characterStates": [dict(s) for s in character_states],
                "contextItemStates": [dict(s) for s in context_item_states],
            },
        ))

    # Maps and map objects

    def create_map(self, story_id: str, story_map: Mapping[str, Any]):
        return self._save(EntityType.MAP, OperationKind.INSERT, story_map["id"], story_id,
                          dict(story_map))

    def update_map(self, story_id: str, map_id: str, story_map: Mapping[str, Any],
                   debounce: bool = False):
        return self._save(EntityType.MAP, OperationKind.UPDATE, map_id, story_id,
                          dict(story_map), debounce)

    def delete_map(self, story_id: str, map_id: str):
        return self._save(EntityType.MAP, OperationKind.DELETE, map_id, story_id)

    def save_map_object(self, entity_type: EntityType, operation: OperationKind,
                        story_id: str, map_id: str, object_id: str,
                        data: Optional[Mapping[str, Any]] = None,
                        debounce: bool = False, **parents: str):
        """Queue a change to an object placed on a map.

        Landmarks, fleets, fleet movements and hyperlanes all carry their
        ``mapId`` (and any other parent ids) in the payload so the store can
        route them, deletes included.
        """
        payload = {**(data or {}), "mapId": map_id, **parents}
        return self._save(EntityType(entity_type), OperationKind(operation), object_id,
                          story_id, payload, debounce)

    def create_landmark(self, story_id: str, map_id: str, landmark: Mapping[str, Any]):
        return self.save_map_object(EntityType.LANDMARK, OperationKind.INSERT, story_id, map_id,
                                    landmark["id"], landmark)

    def update_landmark(self, story_id: str, map_id: str, landmark_id: str,
                        landmark: Mapping[str, Any], debounce: bool = False):
        return self.save_map_object(EntityType.LANDMARK, OperationKind.UPDATE, story_id, map_id,
                                    landmark_id, landmark, debounce)

    def delete_landmark(self, story_id: str, map_id: str, landmark_id: str):
        return self.save_map_object(EntityType.LANDMARK, OperationKind.DELETE, story_id, map_id,
                                    landmark_id)

    def save_landmark_state(self, story_id: str, map_id: str, landmark_id: str,
                            message_id: str, field: str, value: Optional[str]):
        """Queue a per-message landmark field value. One entry per field."""
        return self.queue_save(make_operation(
            OperationType.LANDMARK_STATE, f"{map_id}-{landmark_id}-{field}", story_id,
            {
                "mapId": map_id,
                "landmarkId": landmark_id,
                "messageId": message_id,
                "field": field,
                "value": value,
            },
        ))

    def create_fleet(self, story_id: str, map_id: str, fleet: Mapping[str, Any]):
        return self.save_map_object(EntityType.FLEET, OperationKind.INSERT, story_id, map_id,
                                    fleet["id"], fleet)

    def update_fleet(self, story_id: str, map_id: str, fleet_id: str,
                     fleet: Mapping[str, Any], debounce: bool = False):
        return self.save_map_object(EntityType.FLEET, OperationKind.UPDATE, story_id, map_id,
                                    fleet_id, fleet, debounce)

    def delete_fleet(self, story_id: str, map_id: str, fleet_id: str):
        return self.save_map_object(EntityType.FLEET, OperationKind.DELETE, story_id, map_id,
                                    fleet_id)

    def create_fleet_movement(self, story_id: str, map_id: str, fleet_id: str,
                              movement: Mapping[str, Any]):
        return self.save_map_object(EntityType.FLEET_MOVEMENT, OperationKind.INSERT, story_id,
                                    map_id, movement["id"], movement, fleetId=fleet_id)

    def update_fleet_movement(self, story_id: str, map_id: str, fleet_id: str,
                              movement_id: str, movement: Mapping[str, Any],
                              debounce: bool = False):
        return self.save_map_object(EntityType.FLEET_MOVEMENT, OperationKind.UPDATE, story_id,
                                    map_id, movement_id, movement, debounce, fleetId=fleet_id)

    def delete_fleet_movement(self, story_id: str, map_id: str, fleet_id: str, movement_id: str):
        return self.save_map_object(EntityType.FLEET_MOVEMENT, OperationKind.DELETE, story_id,
                                    map_id, movement_id, fleetId=fleet_id)

    def create_hyperlane(self, story_id: str, map_id: str, hyperlane: Mapping[str, Any]):
        return self.save_map_object(EntityType.HYPERLANE, OperationKind.INSERT, story_id, map_id,
                                    hyperlane["id"], hyperlane)

    def update_hyperlane(self, story_id: str, map_id: str, hyperlane_id: str,
                         hyperlane: Mapping[str, Any], debounce: bool = False):
        return self.save_map_object(EntityType.HYPERLANE, OperationKind.UPDATE, story_id, map_id,
                                    hyperlane_id, hyperlane, debounce)

    def delete_hyperlane(self, story_id: str, map_id: str, hyperlane_id: str):
        return self.save_map_object(EntityType.HYPERLANE, OperationKind.DELETE, story_id, map_id,
                                    hyperlane_id)
