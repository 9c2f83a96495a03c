"""Daybook - a plain-text journal of tasks, notes and events."""

from .config import JournalConfig, load_config
from .document import Document, load_document, serialize_document
from .engine import JournalEngine
from .errors import JournalError
from .filters import run_filter
from .history import UndoLog
from .models import Entry, EntryKind
from .recurrence import entries_for_day, query_day

__version__ = "0.1.0"

__all__ = [
    "Document",
    "Entry",
    "EntryKind",
    "JournalConfig",
    "JournalEngine",
    "JournalError",
    "UndoLog",
    "entries_for_day",
    "load_config",
    "load_document",
    "query_day",
    "run_filter",
    "serialize_document",
]
