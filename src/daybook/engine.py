"""Journal engine - the surface the interface layer drives.

Every mutation goes through the undo log, so it can be reverted; queries go
through the recurrence and filter engines and never change the document.
Day navigation, filter changes and journal switches clear the undo history.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from .config import JournalConfig
from .dates import ParseContext, normalize_relative_dates, parse_date_expression
from .document import Document, load_document, serialize_document
from .errors import (
    DateParseError,
    InvalidDayTargetError,
    InvalidOperationError,
    JournalIOError,
)
from .filters import expand_favorite_tags, parse, evaluate
from .history import (
    AddEntry,
    Batch,
    DeleteEntry,
    EditEntry,
    MoveEntry,
    Operation,
    Reorder,
    ToggleComplete,
    UndoLog,
    UndoRecord,
)
from .models import TAG_RE, Entry, EntryKind, parse_pasted_line
from .persistence import read_journal, write_journal
from .recurrence import DayItem, entries_for_day, resolve_source
from .store import DaySummary, JournalStore

DayLike = Union[date, str]


def _tag_pattern(tag: str) -> re.Pattern:
    """Match ``#tag`` (case-insensitive) with any whitespace before it."""
    return re.compile(r"\s*#" + re.escape(tag.lstrip("#")) + r"(?![A-Za-z0-9_-])", re.IGNORECASE)


def _tidy(text: str) -> str:
    return re.sub(r"[ \t]{2,}", " ", text).strip()


class JournalEngine:
    """One open journal: document, undo log, current day and filter."""

    def __init__(self, config: JournalConfig, today: Optional[date] = None):
        self.config = config
        self._today = today
        self.path: Path = config.journal_path
        self.store = JournalStore(Document(config.header_format))
        self.history = UndoLog(config.history_depth)
        self.current_day: date = self.today
        self.filter_query = ""

    @property
    def today(self) -> date:
        return self._today or date.today()

    @property
    def document(self) -> Document:
        return self.store.document

    # ========== Loading and saving ==========

    def open(self, path: Optional[Path] = None) -> Document:
        """Load the journal file (an absent file is an empty journal)."""
        if path is not None:
            self.path = Path(path)
        text = read_journal(self.path)
        document = self.load_text(text)
        logger.info(f"Opened journal {self.path} ({len(document)} entries)")
        return document

    def load_text(self, text: str) -> Document:
        """Replace the in-memory document with one parsed from ``text``."""
        self.store = JournalStore(load_document(text, self.config.header_format))
        self.history.invalidate()
        return self.store.document

    def save(self) -> Path:
        """Write the journal to disk.

        The document is serialized before any file is touched. A failed
        write leaves the document and the undo history as they were.

        Raises:
            JournalIOError: If the file cannot be written
        """
        text = serialize_document(self.document)
        if "pre_save" in self.config.hooks:
            text = self.config.hooks["pre_save"](text)
        try:
            write_journal(self.path, text)
        except JournalIOError as e:
            logger.error(f"Failed to save {self.path}: {e}")
            raise
        if "post_save" in self.config.hooks:
            self.config.hooks["post_save"](self.path)
        return self.path

    def switch_journal(self, path: Path) -> Document:
        """Open a different journal file; history does not carry over."""
        logger.info(f"Switching journal to {path}")
        return self.open(Path(path))

    # ========== Helpers ==========

    def _apply(self, operation: Operation):
        result, _ = self.history.apply(self.store, operation)
        return result

    def _resolve_day(self, day: Optional[DayLike]) -> date:
        if day is None:
            return self.current_day
        if isinstance(day, str):
            try:
                return parse_date_expression(day, self.today, ParseContext.INTERFACE)
            except DateParseError as e:
                raise InvalidDayTargetError(f"Not a valid day: '{day}'") from e
        return day

    def _prepare_text(self, text: str) -> str:
        text = expand_favorite_tags(text, self.config.favorite_tags)
        if self.config.normalize_dates:
            text = normalize_relative_dates(text, self.today)
        return text

    # ========== Entry mutations ==========

    def add_entry(
        self,
        text: str,
        day: Optional[DayLike] = None,
        kind: EntryKind = EntryKind.TASK,
        position: Optional[int] = None,
        completed: bool = False,
    ) -> Entry:
        """Add an entry to ``day`` (the current day by default)."""
        target = self._resolve_day(day)
        return self._apply(AddEntry(target, kind, self._prepare_text(text), position, completed))

    def edit_entry(self, entry_id: int, text: str, kind: Optional[EntryKind] = None) -> Entry:
        return self._apply(EditEntry(entry_id, self._prepare_text(text), kind))

    def delete_entry(self, entry_id: int):
        return self._apply(DeleteEntry(entry_id))

    def toggle_complete(self, entry_id: int, day: Optional[DayLike] = None) -> bool:
        """Toggle a task as seen on ``day``; recurring tasks get a per-day marker."""
        return self._apply(ToggleComplete(entry_id, self._resolve_day(day)))

    def cycle_kind(self, entry_id: int) -> Entry:
        """Task -> Note -> Event -> Task."""
        entry = self.store.get_entry(entry_id)
        return self._apply(EditEntry(entry_id, entry.text, entry.kind.next_kind()))

    def reorder(self, day: Optional[DayLike], order: list[int]) -> list[int]:
        return self._apply(Reorder(self._resolve_day(day), list(order)))

    def move_entry(self, entry_id: int, day: DayLike, position: Optional[int] = None) -> Entry:
        """Relocate an entry to another day.

        Raises:
            InvalidDayTargetError: If ``day`` cannot be parsed
            InvalidOperationError: If the entry already lives on ``day``
        """
        target = self._resolve_day(day)
        entry = self.store.get_entry(entry_id)
        if entry.origin_day == target:
            raise InvalidOperationError(f"Entry {entry_id} is already on {target}")
        return self._apply(MoveEntry(entry_id, target, position))

    def move_to_today(self, entry_id: int) -> Entry:
        return self.move_entry(entry_id, self.today)

    def defer(self, entry_id: int) -> Entry:
        """Move an entry to tomorrow."""
        return self.move_entry(entry_id, self.today + timedelta(days=1))

    # ========== Tags ==========

    def add_tag(self, entry_id: int, tag: str) -> Entry:
        """Append ``#tag`` to an entry.

        Raises:
            InvalidOperationError: If ``tag`` is not a valid tag name
        """
        name = tag.lstrip("#")
        if not TAG_RE.fullmatch("#" + name):
            raise InvalidOperationError(f"Invalid tag: '{tag}'")
        entry = self.store.get_entry(entry_id)
        text = f"{entry.text} #{name}" if entry.text else f"#{name}"
        return self._apply(EditEntry(entry_id, text))

    def remove_last_tag(self, entry_id: int) -> Optional[Entry]:
        """Remove the last tag in an entry's text; None if it has no tags."""
        entry = self.store.get_entry(entry_id)
        matches = list(TAG_RE.finditer(entry.text))
        if not matches:
            return None
        last = matches[-1]
        text = _tidy(entry.text[:last.start()] + entry.text[last.end():])
        return self._apply(EditEntry(entry_id, text))

    def rename_tag(self, old: str, new: str) -> int:
        """Rename ``#old`` to ``#new`` across the journal as one undoable step.

        Returns:
            Number of entries changed
        """
        name = new.lstrip("#")
        if not TAG_RE.fullmatch("#" + name):
            raise InvalidOperationError(f"Invalid tag: '{new}'")
        pattern = _tag_pattern(old)

        def replace(match: re.Match) -> str:
            leading = match.group(0)[: match.group(0).index("#")]
            return f"{leading}#{name}"

        operations: list[Operation] = []
        for entry in self.document.iter_entries():
            if entry.has_tag(old.lstrip("#")):
                operations.append(EditEntry(entry.id, pattern.sub(replace, entry.text)))
        if operations:
            self._apply(Batch(operations, label=f"Renamed #{old.lstrip('#')} to #{name}"))
        return len(operations)

    def delete_tag(self, tag: str, completed_only: bool = False) -> int:
        """Remove ``#tag`` from every entry (or only completed tasks).

        Entries left with no text are deleted.

        Returns:
            Number of entries changed
        """
        pattern = _tag_pattern(tag)
        operations: list[Operation] = []
        for entry in self.document.iter_entries():
            if not entry.has_tag(tag.lstrip("#")):
                continue
            if completed_only and not (entry.kind is EntryKind.TASK and entry.completed):
                continue
            text = _tidy(pattern.sub("", entry.text))
            if text:
                operations.append(EditEntry(entry.id, text))
            else:
                operations.append(DeleteEntry(entry.id))
        if operations:
            self._apply(Batch(operations, label=f"Deleted #{tag.lstrip('#')}"))
        return len(operations)

    def paste_entries(
        self,
        text: str,
        day: Optional[DayLike] = None,
        position: Optional[int] = None,
    ) -> list[Entry]:
        """Add one entry per non-blank line of ``text``; undone as one step.

        Raises:
            InvalidOperationError: If ``text`` has no non-blank lines
        """
        target = self._resolve_day(day)
        lines = [line for line in text.splitlines() if line.strip()]
        if not lines:
            raise InvalidOperationError("Nothing to paste")
        operations: list[Operation] = []
        for offset, line in enumerate(lines):
            kind, completed, content = parse_pasted_line(line)
            slot = position + offset if position is not None else None
            operations.append(AddEntry(target, kind, self._prepare_text(content), slot, completed))
        count = len(operations)
        label = f"Pasted {count} {'entry' if count == 1 else 'entries'}"
        return self._apply(Batch(operations, label=label))

    # ========== Queries ==========

    def query_day(self, day: Optional[DayLike] = None) -> list[DayItem]:
        return entries_for_day(self.document, self._resolve_day(day))

    def run_filter(self, query: Optional[str] = None) -> list[tuple[Entry, date]]:
        """Evaluate ``query`` (the active filter by default)."""
        predicate = parse(
            self.filter_query if query is None else query,
            saved_filters=self.config.saved_filters,
            negation_prefix=self.config.negation_prefix,
            today=self.today,
            favorite_tags=self.config.favorite_tags,
        )
        return evaluate(predicate, self.document)

    def tags(self) -> list[str]:
        return self.store.collect_tags()

    def day_summaries(self, start: date, end: date) -> dict[date, DaySummary]:
        return self.store.day_summaries(start, end)

    # ========== History ==========

    def undo(self) -> Optional[UndoRecord]:
        record = self.history.undo(self.store)
        if record is not None:
            logger.info(f"Undo: {record.description}")
        return record

    def redo(self) -> Optional[UndoRecord]:
        record = self.history.redo(self.store)
        if record is not None:
            logger.info(f"Redo: {record.description}")
        return record

    # ========== Navigation ==========

    def navigate_to(self, day: DayLike) -> date:
        target = self._resolve_day(day)
        self.history.invalidate()
        self.current_day = target
        return target

    def set_filter(self, query: str) -> list[tuple[Entry, date]]:
        """Make ``query`` the active filter and return its results.

        The query is parsed first; a bad query leaves the active filter and
        the undo history untouched.
        """
        results = self.run_filter(query)
        self.filter_query = query
        self.history.invalidate()
        return results

    def go_to_source(self, entry_id: int) -> date:
        """Navigate to the day an entry (possibly surfaced) is stored under."""
        entry = self.store.get_entry(entry_id)
        origin_day, _ = resolve_source(self.document, DayItem(entry, entry.completed))
        return self.navigate_to(origin_day)
