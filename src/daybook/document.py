"""Journal document: day buckets of entries and preserved text.

The document is a single markdown file. Each day starts with a header line
(``# 2026/01/15`` by default); below it, entry lines and any other text.
Anything the parser does not recognize as an entry is kept verbatim in its
original position, so a file with no entries round-trips byte for byte.
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterator, Optional, Union

from loguru import logger

from .models import CompletionMarker, Entry, parse_entry_line, split_done_tokens


DEFAULT_HEADER_FORMAT = "# %Y/%m/%d"

# strftime directive -> regex fragment for header recognition
_DIRECTIVE_PATTERNS = {
    "Y": r"\d{4}",
    "y": r"\d{2}",
    "m": r"\d{1,2}",
    "d": r"\d{1,2}",
    "j": r"\d{3}",
    "b": r"[A-Za-z]{3}",
    "B": r"[A-Za-z]+",
    "a": r"[A-Za-z]{3}",
    "A": r"[A-Za-z]+",
    "%": "%",
}


def compile_header_format(header_format: str) -> re.Pattern:
    """Build a regex recognizing headers written with ``header_format``.

    Raises:
        ValueError: If the format uses an unsupported directive
    """
    parts = []
    i = 0
    while i < len(header_format):
        ch = header_format[i]
        if ch == "%" and i + 1 < len(header_format):
            directive = header_format[i + 1]
            if directive not in _DIRECTIVE_PATTERNS:
                raise ValueError(f"Unsupported header directive: %{directive}")
            parts.append(_DIRECTIVE_PATTERNS[directive])
            i += 2
        else:
            parts.append(re.escape(ch))
            i += 1
    return re.compile("^" + "".join(parts))


class HeaderFormat:
    """Formats and recognizes day header lines."""

    def __init__(self, header_format: str = DEFAULT_HEADER_FORMAT):
        self.format = header_format
        self._pattern = compile_header_format(header_format)

    def parse(self, line: str) -> Optional[date]:
        """Return the day a header line introduces, or None.

        Trailing text after the date (``# 2026/01/15 Thursday``) is allowed.
        """
        match = self._pattern.match(line)
        if match is None:
            return None
        try:
            return datetime.strptime(match.group(0), self.format).date()
        except ValueError:
            return None

    def render(self, day: date) -> str:
        return day.strftime(self.format)


DayItem = Union[Entry, str]


@dataclass
class DayBucket:
    """One day of the document: its header and interleaved entries/text."""
    day: date
    header: str
    items: list[DayItem] = field(default_factory=list)

    def entries(self) -> list[Entry]:
        return [item for item in self.items if isinstance(item, Entry)]

    def renumber(self) -> None:
        for order, entry in enumerate(self.entries()):
            entry.order = order

    def has_content(self) -> bool:
        """True if the day has entries or non-blank preserved text."""
        for item in self.items:
            if isinstance(item, Entry) or item.strip():
                return True
        return False

    def item_index(self, entry: Entry) -> int:
        for index, item in enumerate(self.items):
            if item is entry:
                return index
        raise ValueError(f"Entry {entry.id} is not in {self.day}")

    def insert_entry(self, entry: Entry, position: Optional[int] = None, index: Optional[int] = None) -> None:
        """Insert ``entry`` at entry position ``position`` (None = append).

        Positions count entries only; preserved lines keep their places.
        Appending places the entry after the last entry, ahead of trailing
        blank lines. An ``index`` into ``items`` overrides ``position`` and
        puts the entry back in the exact slot it was taken from.
        """
        if index is not None:
            self.items.insert(min(max(index, 0), len(self.items)), entry)
            self.renumber()
            return
        entries = self.entries()
        if position is None or position >= len(entries):
            if entries:
                index = self.item_index(entries[-1]) + 1
            else:
                index = len(self.items)
                while index > 0 and isinstance(self.items[index - 1], str) and not self.items[index - 1].strip():
                    index -= 1
        else:
            index = self.item_index(entries[max(position, 0)])
        self.items.insert(index, entry)
        self.renumber()

    def remove_entry(self, entry: Entry) -> int:
        """Remove ``entry`` and return the entry position it held."""
        position = entry.order
        del self.items[self.item_index(entry)]
        self.renumber()
        return position


class Document:
    """The whole journal: preamble text plus an ordered mapping of days."""

    def __init__(self, header_format: str = DEFAULT_HEADER_FORMAT):
        self.headers = HeaderFormat(header_format)
        self.preamble: list[str] = []
        self.days: dict[date, DayBucket] = {}
        self.markers: dict[int, set[date]] = {}
        self.newline = "\n"
        self.trailing_newline = True
        self._entries: dict[int, Entry] = {}
        self._ids = itertools.count(1)

    # ========== Identity ==========

    def next_id(self) -> int:
        return next(self._ids)

    def register(self, entry: Entry) -> None:
        self._entries[entry.id] = entry

    def unregister(self, entry: Entry) -> None:
        self._entries.pop(entry.id, None)

    def get(self, entry_id: int) -> Optional[Entry]:
        return self._entries.get(entry_id)

    def __contains__(self, entry_id: int) -> bool:
        return entry_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ========== Days ==========

    def bucket(self, day: date) -> Optional[DayBucket]:
        return self.days.get(day)

    def ensure_bucket(self, day: date) -> DayBucket:
        """Return the bucket for ``day``, creating it in date order if needed."""
        existing = self.days.get(day)
        if existing is not None:
            return existing

        bucket = DayBucket(day=day, header=self.headers.render(day))
        reordered: dict[date, DayBucket] = {}
        inserted = False
        for existing_day, existing_bucket in self.days.items():
            if not inserted and existing_day > day:
                reordered[day] = bucket
                inserted = True
            reordered[existing_day] = existing_bucket
        if not inserted:
            reordered[day] = bucket
        self.days = reordered
        return bucket

    def chronological(self) -> list[DayBucket]:
        return [self.days[d] for d in sorted(self.days)]

    def iter_entries(self) -> Iterator[Entry]:
        """Entries in chronological day order, then stored order."""
        for bucket in self.chronological():
            yield from bucket.entries()

    # ========== Completion markers ==========

    def marker_days(self, entry_id: int) -> list[date]:
        return sorted(self.markers.get(entry_id, ()))

    def has_marker(self, entry_id: int, day: date) -> bool:
        return day in self.markers.get(entry_id, ())

    def add_marker(self, entry_id: int, day: date) -> None:
        self.markers.setdefault(entry_id, set()).add(day)

    def remove_marker(self, entry_id: int, day: date) -> None:
        days = self.markers.get(entry_id)
        if days is None:
            return
        days.discard(day)
        if not days:
            del self.markers[entry_id]

    def completion_markers(self) -> list[CompletionMarker]:
        return [
            CompletionMarker(source_id=entry_id, occurrence_day=day)
            for entry_id in sorted(self.markers)
            for day in sorted(self.markers[entry_id])
        ]

    # ========== Comparison ==========

    def structure(self) -> tuple:
        """Id-free view of the content, used for structural equality.

        Days that would be pruned on save are left out.
        """
        days = []
        for day, bucket in self.days.items():
            if not bucket.has_content():
                continue
            items = []
            for item in bucket.items:
                if isinstance(item, Entry):
                    items.append((
                        item.kind,
                        item.completed,
                        item.text,
                        tuple(self.marker_days(item.id)),
                    ))
                else:
                    items.append(item)
            days.append((day, bucket.header, tuple(items)))
        return tuple(self.preamble), tuple(days)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.structure() == other.structure()

    __hash__ = None  # type: ignore[assignment]


def load_document(text: str, header_format: str = DEFAULT_HEADER_FORMAT) -> Document:
    """Parse journal text into a Document.

    Args:
        text: Full journal file contents
        header_format: strftime format of day header lines

    Returns:
        The parsed Document. Lines that are not headers or entries are kept
        verbatim; lines before the first header form the preamble.
    """
    document = Document(header_format)
    document.newline = "\r\n" if "\r\n" in text else "\n"
    lines = text.split(document.newline)
    document.trailing_newline = bool(lines) and lines[-1] == ""
    if document.trailing_newline:
        lines.pop()

    current: Optional[DayBucket] = None
    for line in lines:
        day = document.headers.parse(line)
        if day is not None:
            if day in document.days:
                logger.warning(f"Duplicate header for {day}; merging into the first occurrence")
                current = document.days[day]
            else:
                current = DayBucket(day=day, header=line)
                document.days[day] = current
            continue

        if current is None:
            document.preamble.append(line)
            continue

        parsed = parse_entry_line(line)
        if parsed is None:
            current.items.append(line)
            continue

        kind, completed, raw_text = parsed
        clean_text, done_days = split_done_tokens(raw_text)
        entry = Entry(
            id=document.next_id(),
            kind=kind,
            text=clean_text,
            origin_day=current.day,
            completed=completed,
        )
        if done_days and entry.is_recurring:
            for done_day in done_days:
                document.add_marker(entry.id, done_day)
        else:
            entry.text = raw_text
        current.items.append(entry)
        document.register(entry)

    for bucket in document.days.values():
        bucket.renumber()

    logger.debug(f"Loaded journal: {len(document.days)} days, {len(document)} entries")
    return document


def serialize_document(document: Document) -> str:
    """Render a Document back to journal text.

    Days with no entries and only blank text are dropped.
    """
    lines = list(document.preamble)
    for bucket in document.days.values():
        if not bucket.has_content():
            continue
        lines.append(bucket.header)
        for item in bucket.items:
            if isinstance(item, Entry):
                lines.append(item.to_line(document.marker_days(item.id)))
            else:
                lines.append(item)

    if not lines:
        return ""
    text = document.newline.join(lines)
    if document.trailing_newline:
        text += document.newline
    return text
