"""Last-known document revision stamp."""

import logging
from typing import Callable, Optional

from ..operations.model import EntityType

logger = logging.getLogger(__name__)

# Entity types whose successful writes return the document's fresh stamp
STAMPED_ENTITY_TYPES = frozenset({
    EntityType.MESSAGE,
    EntityType.NODE,
    EntityType.STORY_SETTINGS,
    EntityType.STORY,
})


class VersionTracker:
    """Holds the last revision stamp the client confirmed with the server.

    The stamp is sent with whole-document saves so the server can reject a
    write that raced with another writer.
    """

    def __init__(
        self,
        initial: Optional[str] = None,
        on_change: Optional[Callable[[Optional[str]], None]] = None,
    ):
        self._stamp = initial
        self._on_change = on_change

    @property
    def last_known_updated_at(self) -> Optional[str]:
        return self._stamp

    def record(self, stamp: Optional[str]) -> bool:
        """Record a stamp returned by a successful write.

        Returns:
            True if the stored stamp changed
        """
        if not stamp or stamp == self._stamp:
            return False
        self._stamp = stamp
        logger.debug("Document version advanced to %s", stamp)
        if self._on_change:
            self._on_change(stamp)
        return True

    def reset(self, stamp: Optional[str] = None) -> None:
        """Replace the stamp, e.g. after reloading the document."""
        self._stamp = stamp
        if self._on_change:
            self._on_change(stamp)

    def accepts(self, entity_type: EntityType) -> bool:
        """Whether writes of ``entity_type`` report document stamps."""
        return entity_type in STAMPED_ENTITY_TYPES
