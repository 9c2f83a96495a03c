"""Data models for journal entries, schedules, and completion markers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from .dates import (
    RELATIVE_TOKEN_RE,
    ParseContext,
    RecurrencePattern,
    format_date,
    parse_date_expression,
    parse_recurrence_pattern,
)
from .errors import DateParseError


TAG_RE = re.compile(r"#([A-Za-z][A-Za-z0-9_-]*)")

# @1/16, @01/16/26, @1/16/2026, @2026/1/16, @2026-01-16
ABSOLUTE_TOKEN_RE = re.compile(
    r"(?<!\S)@(\d{4}/\d{1,2}/\d{1,2}|\d{4}-\d{1,2}-\d{1,2}|\d{1,2}/\d{1,2}(?:/\d{2,4})?)(?![\w/])"
)

RECURRING_TOKEN_RE = re.compile(
    r"(?<!\S)@every-(day|weekday|monday|tuesday|wednesday|thursday|friday|saturday|sunday"
    r"|mon|tue|wed|thu|fri|sat|sun|[1-9]|[12]\d|3[01])(?=\s|$)",
    re.IGNORECASE,
)

DONE_TOKEN_RE = re.compile(r"\s*@done:(\d{4}/\d{2}/\d{2})(?=\s|$)")


class EntryKind(Enum):
    """Type of journal entry."""
    TASK = "task"
    NOTE = "note"
    EVENT = "event"

    def next_kind(self) -> "EntryKind":
        """Cycle Task -> Note -> Event -> Task."""
        if self is EntryKind.TASK:
            return EntryKind.NOTE
        if self is EntryKind.NOTE:
            return EntryKind.EVENT
        return EntryKind.TASK


@dataclass(frozen=True)
class OneTime:
    """Entry surfaces on ``day`` in addition to its origin day."""
    day: date


@dataclass(frozen=True)
class Recurring:
    """Entry surfaces on every day matching ``pattern``."""
    pattern: RecurrencePattern


Schedule = Union[OneTime, Recurring]


@dataclass(frozen=True)
class CompletionMarker:
    """Completion of one occurrence of a recurring entry."""
    source_id: int
    occurrence_day: date


def extract_tags(text: str) -> list[str]:
    """Return the #tags in ``text`` in order of appearance."""
    return TAG_RE.findall(text)


def extract_schedule(text: str, reference_day: date) -> Optional[Schedule]:
    """Derive the schedule of an entry from its text.

    The first parseable one-time @date token wins; otherwise the first
    @every-* token. Date tokens resolve relative to ``reference_day`` (the
    entry's origin day) with a future bias.
    """
    candidates = sorted(
        list(ABSOLUTE_TOKEN_RE.finditer(text)) + list(RELATIVE_TOKEN_RE.finditer(text)),
        key=lambda m: m.start(),
    )
    for match in candidates:
        try:
            return OneTime(parse_date_expression(match.group(1), reference_day, ParseContext.ENTRY))
        except DateParseError:
            continue

    match = RECURRING_TOKEN_RE.search(text)
    if match:
        pattern = parse_recurrence_pattern(match.group(1))
        if pattern is not None:
            return Recurring(pattern)
    return None


def split_done_tokens(text: str) -> tuple[str, list[date]]:
    """Strip ``@done:YYYY/MM/DD`` tokens, returning the clean text and the days.

    Tokens whose date is not a real day stay in the text.
    """
    days = []

    def take(match: re.Match) -> str:
        try:
            days.append(datetime.strptime(match.group(1), "%Y/%m/%d").date())
        except ValueError:
            return match.group(0)
        return ""

    clean = DONE_TOKEN_RE.sub(take, text)
    if not days:
        return text, []
    return clean.rstrip(), days


def format_done_tokens(days: list[date]) -> str:
    return "".join(f" @done:{format_date(d)}" for d in sorted(days))


@dataclass
class Entry:
    """A single journal line: a task, note, or event."""
    id: int
    kind: EntryKind
    text: str
    origin_day: date
    completed: bool = False
    order: int = 0

    def __post_init__(self):
        if self.kind is not EntryKind.TASK:
            self.completed = False

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(extract_tags(self.text))

    @property
    def last_tag(self) -> Optional[str]:
        tags = self.tags
        return tags[-1] if tags else None

    def has_tag(self, tag: str) -> bool:
        """Case-insensitive tag membership."""
        wanted = tag.lower()
        return any(t.lower() == wanted for t in self.tags)

    @property
    def schedule(self) -> Optional[Schedule]:
        return extract_schedule(self.text, self.origin_day)

    @property
    def is_recurring(self) -> bool:
        return isinstance(self.schedule, Recurring)

    def marker(self) -> str:
        """Line prefix for this entry."""
        if self.kind is EntryKind.TASK:
            return "- [x] " if self.completed else "- [ ] "
        if self.kind is EntryKind.NOTE:
            return "- "
        return "* "

    def to_line(self, done_days: Optional[list[date]] = None) -> str:
        """Render the entry as a markdown line."""
        return self.marker() + self.text + format_done_tokens(done_days or [])


@dataclass(frozen=True)
class EntrySnapshot:
    """Immutable copy of an entry, kept by undo records."""
    id: int
    kind: EntryKind
    text: str
    completed: bool
    origin_day: date
    order: int
    done_days: tuple[date, ...] = field(default_factory=tuple)
    # slot in the day bucket, counting preserved lines
    index: Optional[int] = None


def parse_entry_line(line: str) -> Optional[tuple[EntryKind, bool, str]]:
    """Recognize an entry line.

    Returns:
        ``(kind, completed, text)`` or None if the line is not an entry.
        Indented lines are never entries.
    """
    if line in ("- [ ]",):
        return EntryKind.TASK, False, ""
    if line in ("- [x]", "- [X]"):
        return EntryKind.TASK, True, ""
    if line.startswith("- [ ] "):
        return EntryKind.TASK, False, line[6:]
    if line.startswith("- [x] ") or line.startswith("- [X] "):
        return EntryKind.TASK, True, line[6:]
    if line.startswith("* "):
        return EntryKind.EVENT, False, line[2:]
    if line.startswith("- "):
        return EntryKind.NOTE, False, line[2:]
    return None


def parse_pasted_line(line: str) -> tuple[EntryKind, bool, str]:
    """Interpret a pasted line; anything without a marker becomes a note."""
    stripped = line.strip()
    parsed = parse_entry_line(stripped)
    if parsed is not None:
        return parsed
    return EntryKind.NOTE, False, stripped
