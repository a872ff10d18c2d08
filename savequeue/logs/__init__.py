"""Save journal logging for savequeue."""

from .ndjson import EventType, JournalEvent, JournalSummary, SaveJournal

__all__ = ["EventType", "JournalEvent", "JournalSummary", "SaveJournal"]
