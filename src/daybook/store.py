"""Journal store - atomic mutations over a Document.

Every mutation validates its arguments before touching the document, so a
failed call leaves the document exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from loguru import logger

from .document import DayBucket, Document
from .errors import EntryNotFoundError, InvalidDayTargetError, InvalidOperationError
from .models import Entry, EntryKind, EntrySnapshot, extract_tags


@dataclass(frozen=True)
class DaySummary:
    """What a calendar needs to shade one day."""
    has_entries: bool = False
    has_incomplete_tasks: bool = False
    has_events: bool = False


def _check_day(day: Any) -> date:
    if isinstance(day, datetime):
        return day.date()
    if not isinstance(day, date):
        raise InvalidDayTargetError(f"Not a valid day: {day!r}")
    return day


class JournalStore:
    """Owns a Document and applies entry-level mutations to it."""

    def __init__(self, document: Optional[Document] = None):
        self.document = document if document is not None else Document()

    # ========== Lookup ==========

    def get_entry(self, entry_id: int) -> Entry:
        """Return the entry with ``entry_id``.

        Raises:
            EntryNotFoundError: If no such entry exists
        """
        entry = self.document.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"Entry not found: {entry_id}")
        return entry

    def _bucket_of(self, entry: Entry) -> DayBucket:
        return self.document.days[entry.origin_day]

    def locate(self, entry_id: int) -> tuple[date, int]:
        """Return ``(origin_day, order)`` for an entry."""
        entry = self.get_entry(entry_id)
        return entry.origin_day, entry.order

    def entries_on(self, day: date) -> list[Entry]:
        bucket = self.document.bucket(day)
        return bucket.entries() if bucket is not None else []

    def snapshot(self, entry_id: int) -> EntrySnapshot:
        """Immutable copy of an entry including its completion markers."""
        entry = self.get_entry(entry_id)
        return EntrySnapshot(
            id=entry.id,
            kind=entry.kind,
            text=entry.text,
            completed=entry.completed,
            origin_day=entry.origin_day,
            order=entry.order,
            done_days=tuple(self.document.marker_days(entry.id)),
            index=self._bucket_of(entry).item_index(entry),
        )

    # ========== Mutations ==========

    def add_entry(
        self,
        day: date,
        position: Optional[int],
        kind: EntryKind,
        text: str,
        completed: bool = False,
    ) -> Entry:
        """Create a new entry under ``day`` at entry position ``position``.

        Args:
            day: Origin day for the entry
            position: Index among the day's entries; None appends
            kind: Task, note, or event
            text: Entry text including #tags and @schedule tokens
            completed: Initial completion state (tasks only)

        Returns:
            The created Entry

        Raises:
            InvalidDayTargetError: If ``day`` is not a date
        """
        day = _check_day(day)
        entry = Entry(
            id=self.document.next_id(),
            kind=kind,
            text=text,
            origin_day=day,
            completed=completed,
        )
        self.document.ensure_bucket(day).insert_entry(entry, position)
        self.document.register(entry)
        logger.debug(f"Added entry {entry.id} on {day}")
        return entry

    def restore_entry(self, snapshot: EntrySnapshot) -> Entry:
        """Reinsert a deleted entry with its original id, position and markers."""
        if snapshot.id in self.document:
            raise InvalidOperationError(f"Entry {snapshot.id} already exists")
        day = _check_day(snapshot.origin_day)
        entry = Entry(
            id=snapshot.id,
            kind=snapshot.kind,
            text=snapshot.text,
            origin_day=day,
            completed=snapshot.completed,
        )
        self.document.ensure_bucket(day).insert_entry(entry, snapshot.order, snapshot.index)
        self.document.register(entry)
        for done_day in snapshot.done_days:
            self.document.add_marker(entry.id, done_day)
        logger.debug(f"Restored entry {entry.id} on {day}")
        return entry

    def edit_entry(self, entry_id: int, new_text: str, new_kind: Optional[EntryKind] = None) -> Entry:
        """Replace an entry's text (and optionally kind).

        Tags and schedule are re-derived from the new text. The entry stays
        in its origin day even if its @date token changes. Completion markers
        are dropped when the entry stops being recurring.
        """
        entry = self.get_entry(entry_id)
        entry.text = new_text
        if new_kind is not None:
            entry.kind = new_kind
            if new_kind is not EntryKind.TASK:
                entry.completed = False
        if not entry.is_recurring:
            self.document.markers.pop(entry.id, None)
        logger.debug(f"Edited entry {entry.id}")
        return entry

    def delete_entry(self, entry_id: int) -> EntrySnapshot:
        """Remove an entry and its completion markers.

        Returns:
            Snapshot sufficient to restore the entry
        """
        snapshot = self.snapshot(entry_id)
        entry = self.get_entry(entry_id)
        self._bucket_of(entry).remove_entry(entry)
        self.document.unregister(entry)
        self.document.markers.pop(entry.id, None)
        logger.debug(f"Deleted entry {entry.id} from {entry.origin_day}")
        return snapshot

    def toggle_complete(self, entry_id: int, occurrence_day: date) -> bool:
        """Toggle completion of a task occurrence.

        A recurring task gets a completion marker for ``occurrence_day``
        added or removed; its own ``completed`` field never changes. Any
        other task flips ``completed``.

        Returns:
            The new completion state of the occurrence

        Raises:
            InvalidOperationError: If the entry is not a task
        """
        entry = self.get_entry(entry_id)
        occurrence_day = _check_day(occurrence_day)
        if entry.kind is not EntryKind.TASK:
            raise InvalidOperationError(f"Entry {entry_id} is not a task")

        if entry.is_recurring:
            if self.document.has_marker(entry.id, occurrence_day):
                self.document.remove_marker(entry.id, occurrence_day)
                return False
            self.document.add_marker(entry.id, occurrence_day)
            return True

        entry.completed = not entry.completed
        return entry.completed

    def set_completed(self, entry_id: int, completed: bool) -> bool:
        """Set the completion flag directly; returns the previous value."""
        entry = self.get_entry(entry_id)
        if entry.kind is not EntryKind.TASK:
            raise InvalidOperationError(f"Entry {entry_id} is not a task")
        previous = entry.completed
        entry.completed = completed
        return previous

    def set_markers(self, entry_id: int, days: list[date]) -> list[date]:
        """Replace an entry's completion markers; returns the previous days."""
        self.get_entry(entry_id)
        previous = self.document.marker_days(entry_id)
        self.document.markers.pop(entry_id, None)
        for day in days:
            self.document.add_marker(entry_id, day)
        return previous

    def reorder(self, day: date, new_order: list[int]) -> list[int]:
        """Rearrange the entries of ``day``.

        Args:
            day: Day whose entries are reordered
            new_order: Entry ids in their new order; must be a permutation
                of the day's current entry ids

        Returns:
            The previous order of entry ids

        Raises:
            InvalidOperationError: If ``new_order`` is not a permutation
        """
        day = _check_day(day)
        bucket = self.document.bucket(day)
        entries = bucket.entries() if bucket is not None else []
        previous = [entry.id for entry in entries]
        if sorted(previous) != sorted(new_order):
            raise InvalidOperationError(
                f"New order for {day} must contain exactly the ids {previous}"
            )
        if bucket is None or previous == list(new_order):
            return previous

        by_id = {entry.id: entry for entry in entries}
        slots = [index for index, item in enumerate(bucket.items) if isinstance(item, Entry)]
        for slot, entry_id in zip(slots, new_order):
            bucket.items[slot] = by_id[entry_id]
        bucket.renumber()
        logger.debug(f"Reordered {len(previous)} entries on {day}")
        return previous

    def move_entry(
        self,
        entry_id: int,
        new_day: date,
        position: Optional[int] = None,
        index: Optional[int] = None,
    ) -> tuple[date, int]:
        """Relocate an entry to another origin day.

        ``index`` places the entry at an exact slot of the target day, as
        taken from a snapshot; it overrides ``position``.

        Returns:
            ``(previous_day, previous_position)`` for moving it back

        Raises:
            EntryNotFoundError: If the entry does not exist
            InvalidDayTargetError: If ``new_day`` is not a date
        """
        entry = self.get_entry(entry_id)
        new_day = _check_day(new_day)
        previous = (entry.origin_day, entry.order)

        self._bucket_of(entry).remove_entry(entry)
        entry.origin_day = new_day
        self.document.ensure_bucket(new_day).insert_entry(entry, position, index)
        logger.debug(f"Moved entry {entry.id} from {previous[0]} to {new_day}")
        return previous

    # ========== Read helpers ==========

    def collect_tags(self) -> list[str]:
        """All tags in the journal, deduplicated case-insensitively, sorted."""
        seen: dict[str, str] = {}
        for entry in self.document.iter_entries():
            for tag in extract_tags(entry.text):
                seen.setdefault(tag.lower(), tag)
        return [seen[key] for key in sorted(seen)]

    def day_summaries(self, start: date, end: date) -> dict[date, DaySummary]:
        """Calendar summaries for days with entries in ``[start, end]``."""
        result = {}
        for day, bucket in self.document.days.items():
            if not start <= day <= end:
                continue
            entries = bucket.entries()
            if not entries:
                continue
            result[day] = DaySummary(
                has_entries=True,
                has_incomplete_tasks=any(
                    e.kind is EntryKind.TASK and not e.completed for e in entries
                ),
                has_events=any(e.kind is EntryKind.EVENT for e in entries),
            )
        return result
