"""HTTP store adapter for the story editor REST API.

Maps every operation type to an endpoint and translates HTTP failures into
the structured error types the processor classifies.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional
from urllib.parse import quote

import httpx

from ..config import SaveQueueConfig
from ..errors import (
    AuthError,
    ClientError,
    ConflictError,
    ErrorClass,
    ErrorClassifier,
    TransientError,
)
from ..operations.model import EntityType, Operation, OperationKind, OperationType
from .base import HandlerRegistry, WriteResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Route:
    """Endpoint for one operation type.

    ``path`` is a format template filled from ``id`` (the entity id),
    ``story_id`` and the operation's payload keys.
    """

    method: str
    path: str
    send_body: bool = True
    story_in_body: bool = False


ROUTES: Dict[OperationType, Route] = {
    OperationType.MESSAGE_INSERT: Route("POST", "/my/scenes/{sceneId}/messages"),
    OperationType.MESSAGE_UPDATE: Route("PATCH", "/my/messages/{id}"),
    OperationType.MESSAGE_DELETE: Route("DELETE", "/my/messages/{id}", send_body=False),
    OperationType.MESSAGE_REORDER: Route("POST", "/stories/{story_id}/messages/reorder"),
    OperationType.PARAGRAPH_INSERT: Route("POST", "/my/message-revisions/{revisionId}/paragraphs"),
    OperationType.PARAGRAPH_UPDATE: Route("PATCH", "/my/paragraphs/{id}"),
    OperationType.PARAGRAPH_DELETE: Route("DELETE", "/my/paragraphs/{id}", send_body=False),
    OperationType.CHAPTER_UPDATE: Route("PATCH", "/my/chapters/{id}"),
    OperationType.CHAPTER_DELETE: Route("DELETE", "/my/chapters/{id}", send_body=False),
    OperationType.CHARACTER_INSERT: Route("POST", "/my/stories/{story_id}/characters"),
    OperationType.CHARACTER_UPDATE: Route("PATCH", "/my/characters/{id}"),
    OperationType.CHARACTER_DELETE: Route("DELETE", "/my/characters/{id}", send_body=False),
    OperationType.CONTEXT_INSERT: Route("POST", "/my/stories/{story_id}/context-items"),
    OperationType.CONTEXT_UPDATE: Route("PATCH", "/my/context-items/{id}"),
    OperationType.CONTEXT_DELETE: Route("DELETE", "/my/context-items/{id}", send_body=False),
    OperationType.CONTEXT_STATES: Route("POST", "/context-states/batch-update", story_in_body=True),
    OperationType.MAP_INSERT: Route("POST", "/my/stories/{story_id}/maps"),
    OperationType.MAP_UPDATE: Route("PUT", "/my/maps/{id}"),
    OperationType.MAP_DELETE: Route("DELETE", "/my/maps/{id}", send_body=False),
    OperationType.LANDMARK_INSERT: Route("POST", "/my/maps/{mapId}/landmarks"),
    OperationType.LANDMARK_UPDATE: Route("PUT", "/my/landmarks/{id}"),
    OperationType.LANDMARK_DELETE: Route("DELETE", "/my/landmarks/{id}", send_body=False),
    OperationType.LANDMARK_STATE: Route("POST", "/stories/{story_id}/landmark-states"),
    OperationType.FLEET_INSERT: Route("POST", "/my/maps/{mapId}/pawns"),
    OperationType.FLEET_UPDATE: Route("PUT", "/my/pawns/{id}"),
    OperationType.FLEET_DELETE: Route("DELETE", "/my/pawns/{id}", send_body=False),
    OperationType.FLEET_MOVEMENT_INSERT: Route(
        "POST", "/stories/{story_id}/maps/{mapId}/fleets/{fleetId}/movements"),
    OperationType.FLEET_MOVEMENT_UPDATE: Route(
        "PUT", "/stories/{story_id}/maps/{mapId}/fleets/{fleetId}/movements/{id}"),
    OperationType.FLEET_MOVEMENT_DELETE: Route(
        "DELETE", "/stories/{story_id}/maps/{mapId}/fleets/{fleetId}/movements/{id}",
        send_body=False),
    OperationType.HYPERLANE_INSERT: Route("POST", "/my/maps/{mapId}/paths"),
    OperationType.HYPERLANE_UPDATE: Route("PUT", "/my/paths/{id}"),
    OperationType.HYPERLANE_DELETE: Route("DELETE", "/my/paths/{id}", send_body=False),
    OperationType.STORY_SETTINGS: Route("PATCH", "/my/stories/{story_id}"),
}

# Story hierarchy nodes live under a different collection per node type.
# Inserts are posted to the parent's collection.
NODE_COLLECTIONS = {
    "book": "books",
    "arc": "arcs",
    "chapter": "chapters",
    "scene": "scenes",
}
NODE_INSERT_PATHS = {
    "book": "/my/stories/{story_id}/books",
    "arc": "/my/books/{parentId}/arcs",
    "chapter": "/my/arcs/{parentId}/chapters",
    "scene": "/my/chapters/{parentId}/scenes",
}


def extract_updated_at(body: Any) -> Optional[str]:
    """Find the document stamp in a response body.

    Accepts ``{"updatedAt": ...}`` as well as one level of nesting such as
    ``{"message": {"updatedAt": ...}}``.
    """
    if not isinstance(body, dict):
        return None
    if body.get("updatedAt"):
        return body["updatedAt"]
    for value in body.values():
        if isinstance(value, dict) and value.get("updatedAt"):
            return value["updatedAt"]
    return None


class HttpStoreAdapter:
    """StoreAdapter backed by an ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        config: Optional[SaveQueueConfig] = None,
        headers: Optional[Dict[str, str]] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        config = config or SaveQueueConfig()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            base_url=base_url or config.api_base_url,
            timeout=config.request_timeout_seconds,
            headers=headers,
        )
        self.classifier = classifier or ErrorClassifier()
        self.registry = HandlerRegistry()
        for op_type, route in ROUTES.items():
            self.registry.register_type(op_type, self._route_handler(route))
        self.registry.register(EntityType.NODE, OperationKind.INSERT, self._node_insert)
        self.registry.register(EntityType.NODE, OperationKind.UPDATE, self._node_update)
        self.registry.register(EntityType.NODE, OperationKind.DELETE, self._node_delete)
        self.registry.register(EntityType.NODE, OperationKind.WRITE, self._node_bulk_update)

    async def __aenter__(self) -> "HttpStoreAdapter":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    # StoreAdapter protocol

    async def execute(self, operation: Operation) -> WriteResult:
        return await self.registry.execute(operation)

    async def save_document(
        self,
        story_id: str,
        payload: Dict[str, Any],
        last_known_updated_at: Optional[str] = None,
        force: bool = False,
    ) -> WriteResult:
        body = dict(payload)
        if force:
            body["force"] = True
        elif last_known_updated_at is not None:
            body["lastKnownUpdatedAt"] = last_known_updated_at
        data = await self.request("PUT", f"/stories/{quote(story_id, safe='')}", body)
        return WriteResult(updated_at=extract_updated_at(data), data=data)

    # Requests

    async def request(self, method: str, path: str, body: Any = None) -> Dict[str, Any]:
        """Send a request and return its JSON body.

        Raises:
            TransientError: on network failures, timeouts and 5xx responses
            AuthError, ConflictError, ClientError: on rejected requests
        """
        try:
            response = await self.client.request(method, path, json=body)
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out") from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise self.error_for_response(method, path, response)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            logger.warning("Non-JSON response from %s %s", method, path)
            return {}
        return data if isinstance(data, dict) else {"items": data}

    def error_for_response(self, method: str, path: str, response: httpx.Response) -> Exception:
        """Build the structured error for a failed response."""
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("error") or f"{method} {path} failed with status {status}"

        error_class = self.classifier.classify_status(status)
        if error_class == ErrorClass.AUTH:
            return AuthError(message, status)
        if error_class == ErrorClass.CONFLICT:
            return ConflictError(
                message,
                server_updated_at=body.get("serverUpdatedAt"),
                client_updated_at=body.get("clientUpdatedAt"),
            )
        if error_class == ErrorClass.CLIENT:
            return ClientError(message, status)
        return TransientError(message, status)

    # Handlers

    @staticmethod
    def _format(template: str, operation: Operation, data: Optional[Dict[str, Any]] = None) -> str:
        fields = {
            k: quote(str(v), safe="")
            for k, v in (data or {}).items()
            if isinstance(v, (str, int))
        }
        fields["id"] = quote(operation.entity_id, safe="")
        fields["story_id"] = quote(operation.story_id, safe="")
        try:
            return template.format(**fields)
        except KeyError as e:
            raise ClientError(
                f"{operation.describe()} is missing routing field {e.args[0]!r}"
            ) from None

    def _route_handler(self, route: Route):
        async def handler(operation: Operation) -> WriteResult:
            data = operation.data if isinstance(operation.data, dict) else {}
            path = self._format(route.path, operation, data)
            body = None
            if route.send_body:
                body = operation.data
                if route.story_in_body:
                    body = {"storyId": operation.story_id, **data}
            result = await self.request(route.method, path, body)
            return WriteResult(updated_at=extract_updated_at(result), data=result)
        return handler

    def _node_path(self, operation: Operation, node: Dict[str, Any]) -> str:
        node_type = node.get("type")
        if node_type not in NODE_COLLECTIONS:
            raise ClientError(f"{operation.describe()} has unknown node type {node_type!r}")
        return f"/my/{NODE_COLLECTIONS[node_type]}/{quote(operation.entity_id, safe='')}"

    async def _node_insert(self, operation: Operation) -> WriteResult:
        node = operation.data or {}
        template = NODE_INSERT_PATHS.get(node.get("type"))
        if template is None:
            raise ClientError(f"{operation.describe()} has unknown node type {node.get('type')!r}")
        result = await self.request("POST", self._format(template, operation, node), node)
        return WriteResult(updated_at=extract_updated_at(result), data=result)

    async def _node_update(self, operation: Operation) -> WriteResult:
        node = operation.data or {}
        result = await self.request("PATCH", self._node_path(operation, node), node)
        return WriteResult(updated_at=extract_updated_at(result), data=result)

    async def _node_delete(self, operation: Operation) -> WriteResult:
        result = await self.request("DELETE", self._node_path(operation, operation.data or {}))
        return WriteResult(updated_at=extract_updated_at(result), data=result)

    async def _node_bulk_update(self, operation: Operation) -> WriteResult:
        """Split a bulk node update into one PATCH per node."""
        nodes: Iterable[Dict[str, Any]] = operation.data or []
        updated_at = None
        for node in nodes:
            single = Operation(
                type=OperationType.NODE_UPDATE,
                entity_id=node["id"],
                story_id=operation.story_id,
                data=node,
                timestamp=operation.timestamp,
            )
            result = await self._node_update(single)
            updated_at = result.updated_at or updated_at
        return WriteResult(updated_at=updated_at)
