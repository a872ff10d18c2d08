"""Local document store for local storage mode.

Documents that never leave the machine are saved whole: every change
rewrites the complete document payload into a SQLite table.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiosqlite

from .base import WriteResult

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    story_id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    revision INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT NOT NULL
)
"""


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalDocumentStore:
    """Whole-document store on SQLite via aiosqlite.

    Use as an async context manager, or call connect()/close().
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    async def connect(self) -> "LocalDocumentStore":
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            await self._conn.execute(SCHEMA)
            await self._conn.commit()
        return self

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> "LocalDocumentStore":
        return await self.connect()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("LocalDocumentStore is not connected")
        return self._conn

    async def save(self, story_id: str, payload: Dict[str, Any]) -> WriteResult:
        """Write the whole document, bumping its revision."""
        updated_at = _utcnow()
        await self.conn.execute(
            """INSERT INTO documents (story_id, payload, revision, updated_at)
               VALUES (?, ?, 1, ?)
               ON CONFLICT(story_id) DO UPDATE SET
                   payload = excluded.payload,
                   revision = documents.revision + 1,
                   updated_at = excluded.updated_at""",
            (story_id, json.dumps(payload, default=str), updated_at),
        )
        await self.conn.commit()
        logger.debug("Saved local document %s", story_id)
        return WriteResult(updated_at=updated_at)

    async def load(self, story_id: str) -> Optional[Dict[str, Any]]:
        async with self.conn.execute(
            "SELECT payload FROM documents WHERE story_id = ?", (story_id,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def revision(self, story_id: str) -> int:
        """Number of times the document has been saved, 0 if never."""
        async with self.conn.execute(
            "SELECT revision FROM documents WHERE story_id = ?", (story_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else 0

    async def delete(self, story_id: str) -> bool:
        cursor = await self.conn.execute(
            "DELETE FROM documents WHERE story_id = ?", (story_id,)
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    async def list_documents(self) -> List[Dict[str, Any]]:
        """Stored documents, most recently saved first."""
        async with self.conn.execute(
            "SELECT story_id, revision, updated_at FROM documents ORDER BY updated_at DESC"
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            {"story_id": story_id, "revision": revision, "updated_at": updated_at}
            for story_id, revision, updated_at in rows
        ]
