"""Recurrence engine - what shows up on a given day.

A day's view is the entries stored under it, followed by entries from other
days that are scheduled onto it, either once (``@1/16``) or repeatedly
(``@every-mon``). Scheduled entries are views of their source line; they
are never copied into the viewed day.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .dates import matches_recurrence
from .document import Document
from .errors import EntryNotFoundError
from .models import Entry, OneTime, Recurring


@dataclass(frozen=True)
class DayItem:
    """One line of a daily view."""
    entry: Entry
    occurrence_completed: bool
    surfaced: bool = False

    @property
    def source_day(self) -> date:
        return self.entry.origin_day


def occurrence_completed(document: Document, entry: Entry, day: date) -> bool:
    """Completion of ``entry`` as seen on ``day``."""
    if isinstance(entry.schedule, Recurring):
        return document.has_marker(entry.id, day)
    return entry.completed


def surfaces_on(entry: Entry, day: date) -> bool:
    """True if the entry's schedule puts it on ``day``."""
    schedule = entry.schedule
    if isinstance(schedule, OneTime):
        return schedule.day == day
    if isinstance(schedule, Recurring):
        return matches_recurrence(schedule.pattern, day)
    return False


def entries_for_day(document: Document, day: date) -> list[DayItem]:
    """Entries visible on ``day``.

    Entries stored under ``day`` come first in stored order, including any
    whose own schedule also points at ``day`` (they appear once). Entries
    from other days follow, ordered by origin day then stored order.
    """
    items = []
    bucket = document.bucket(day)
    if bucket is not None:
        for entry in bucket.entries():
            items.append(DayItem(entry, occurrence_completed(document, entry, day)))

    for other in document.chronological():
        if other.day == day:
            continue
        for entry in other.entries():
            if surfaces_on(entry, day):
                items.append(DayItem(entry, occurrence_completed(document, entry, day), surfaced=True))
    return items


query_day = entries_for_day


def resolve_source(document: Document, item: DayItem) -> tuple[date, Entry]:
    """Return the origin day and stored entry behind a (possibly surfaced) item."""
    entry = document.get(item.entry.id)
    if entry is None:
        raise EntryNotFoundError(f"Source entry not found: {item.entry.id}")
    return entry.origin_day, entry
