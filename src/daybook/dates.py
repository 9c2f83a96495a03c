"""Date expression parsing and recurrence matching.

Dates in entries lean toward the future (``@fri`` means next Friday) while
dates in filter queries lean toward the past (``after:fri`` means last
Friday). A trailing ``+`` or ``-`` forces the direction either way.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Union

from .errors import AmbiguousDateError, DateParseError, InvalidDateError


class ParseContext(Enum):
    """Where a date expression was typed; decides the default direction."""
    ENTRY = "entry"
    FILTER = "filter"
    INTERFACE = "interface"


WEEKDAY_NAMES = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}

WEEKDAY_ABBREVIATIONS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

_WEEKDAY_ALTERNATION = "|".join(sorted(WEEKDAY_NAMES, key=len, reverse=True))

# Relative date tokens as they appear inside entry text (@tomorrow, @d3, @fri)
RELATIVE_TOKEN_RE = re.compile(
    rf"(?<!\S)@(today|tomorrow|yesterday|d[1-9]\d{{0,2}}|{_WEEKDAY_ALTERNATION})(?![\w/])",
    re.IGNORECASE,
)

_ISO_RE = re.compile(r"^(\d{4})[/-](\d{1,2})[/-](\d{1,2})$")
_MDY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d+)$")
_MD_RE = re.compile(r"^(\d{1,2})/(\d{1,2})$")
_OFFSET_RE = re.compile(r"^d([1-9]\d{0,2})$")
_SIGNED_OFFSET_RE = re.compile(r"^([+-])(\d{1,3})$")

DATE_FORMAT = "%Y/%m/%d"


# ========== Recurrence patterns ==========


@dataclass(frozen=True)
class Daily:
    """Matches every day."""

    def token(self) -> str:
        return "day"


@dataclass(frozen=True)
class Weekday:
    """Matches Monday through Friday."""

    def token(self) -> str:
        return "weekday"


@dataclass(frozen=True)
class WeeklyOn:
    """Matches one day of the week (0 = Monday)."""
    weekday: int

    def token(self) -> str:
        return WEEKDAY_ABBREVIATIONS[self.weekday]


@dataclass(frozen=True)
class MonthlyOn:
    """Matches one day of the month (1..31)."""
    day_of_month: int

    def token(self) -> str:
        return str(self.day_of_month)


RecurrencePattern = Union[Daily, Weekday, WeeklyOn, MonthlyOn]


def matches_recurrence(pattern: RecurrencePattern, day: date) -> bool:
    """Return True if ``pattern`` produces an occurrence on ``day``.

    Months shorter than a ``MonthlyOn`` day never match; there is no
    end-of-month clamping.
    """
    if isinstance(pattern, Daily):
        return True
    if isinstance(pattern, Weekday):
        return day.weekday() < 5
    if isinstance(pattern, WeeklyOn):
        return day.weekday() == pattern.weekday
    if isinstance(pattern, MonthlyOn):
        return day.day == pattern.day_of_month
    raise TypeError(f"Unknown recurrence pattern: {pattern!r}")


def parse_recurrence_pattern(text: str) -> Optional[RecurrencePattern]:
    """Parse the part after ``@every-`` (day, weekday, mon..sun, 1..31)."""
    lower = text.lower()
    if lower == "day":
        return Daily()
    if lower == "weekday":
        return Weekday()
    if lower in WEEKDAY_NAMES:
        return WeeklyOn(WEEKDAY_NAMES[lower])
    if lower.isdigit() and 1 <= int(lower) <= 31:
        return MonthlyOn(int(lower))
    return None


# ========== Date expressions ==========


def format_date(day: date) -> str:
    """Format a date the way schedule tokens and headers write it."""
    return day.strftime(DATE_FORMAT)


def _next_weekday(reference: date, weekday: int) -> date:
    days_ahead = (weekday - reference.weekday()) % 7 or 7
    return reference + timedelta(days=days_ahead)


def _previous_weekday(reference: date, weekday: int) -> date:
    days_back = (reference.weekday() - weekday) % 7 or 7
    return reference - timedelta(days=days_back)


def _build_date(year: int, month: int, day: int, text: str) -> date:
    if not 1 <= month <= 12:
        raise InvalidDateError(f"Month out of range in '{text}'", token=text)
    if not 1 <= day <= 31:
        raise InvalidDateError(f"Day out of range in '{text}'", token=text)
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidDateError(f"Invalid date '{text}': {e}", token=text) from None


def _resolve_month_day(month: int, day: int, reference: date, future: bool, text: str) -> date:
    """Pick the year for a yearless M/D, nearest to ``reference`` in the given direction."""
    if not 1 <= month <= 12:
        raise InvalidDateError(f"Month out of range in '{text}'", token=text)
    # Feb 29 is the only day that exists in some years but not others
    if not 1 <= day <= (29 if month == 2 else calendar.monthrange(2001, month)[1]):
        raise InvalidDateError(f"Day out of range in '{text}'", token=text)

    step = 1 if future else -1
    year = reference.year
    for _ in range(9):
        if day <= calendar.monthrange(year, month)[1]:
            candidate = date(year, month, day)
            if (future and candidate >= reference) or (not future and candidate <= reference):
                return candidate
        year += step
    raise InvalidDateError(f"No valid year for '{text}'", token=text)  # pragma: no cover


def _parse_relative(lower: str, reference: date, context: ParseContext) -> Optional[date]:
    if lower == "today":
        return reference
    if lower == "tomorrow":
        return reference + timedelta(days=1)
    if lower == "yesterday":
        return reference - timedelta(days=1)

    m = _SIGNED_OFFSET_RE.match(lower)
    if m:
        days = int(m.group(2))
        return reference + timedelta(days=days if m.group(1) == "+" else -days)

    base = lower
    explicit = None
    if base.endswith("+"):
        base, explicit = base[:-1], True
    elif base.endswith("-"):
        base, explicit = base[:-1], False

    if explicit is not None:
        future = explicit
    else:
        future = context != ParseContext.FILTER

    m = _OFFSET_RE.match(base)
    if m:
        days = int(m.group(1))
        return reference + timedelta(days=days if future else -days)

    if base in WEEKDAY_NAMES:
        weekday = WEEKDAY_NAMES[base]
        return _next_weekday(reference, weekday) if future else _previous_weekday(reference, weekday)

    return None


def _parse_absolute(text: str, reference: date, context: ParseContext) -> Optional[date]:
    m = _ISO_RE.match(text)
    if m:
        return _build_date(int(m.group(1)), int(m.group(2)), int(m.group(3)), text)

    m = _MDY_RE.match(text)
    if m:
        year_text = m.group(3)
        if len(year_text) == 2:
            year = 2000 + int(year_text)
        elif len(year_text) == 4:
            year = int(year_text)
        else:
            raise AmbiguousDateError(
                f"Year '{year_text}' in '{text}' must have 2 or 4 digits", token=text
            )
        return _build_date(year, int(m.group(1)), int(m.group(2)), text)

    m = _MD_RE.match(text)
    if m:
        return _resolve_month_day(
            int(m.group(1)), int(m.group(2)), reference,
            future=context != ParseContext.FILTER, text=text,
        )

    return None


def parse_date_expression(
    text: str,
    reference_day: date,
    context: ParseContext = ParseContext.ENTRY,
) -> date:
    """Parse a relative or absolute date expression.

    Args:
        text: Expression such as ``tomorrow``, ``fri``, ``d7+``, ``-3``,
            ``1/15``, ``1/15/26``, ``2026/01/15``
        reference_day: Day that relative expressions are measured from
        context: Decides the default direction of weekdays, offsets and M/D

    Returns:
        The resolved date

    Raises:
        InvalidDateError: If a component is out of range
        AmbiguousDateError: If the year cannot be disambiguated
        DateParseError: If the expression is not recognized
    """
    cleaned = text.strip()
    lower = cleaned.lower()
    if not lower:
        raise DateParseError("Empty date expression", token=text)

    result = _parse_relative(lower, reference_day, context)
    if result is None:
        result = _parse_absolute(lower, reference_day, context)
    if result is None:
        raise DateParseError(f"Unrecognized date expression: '{cleaned}'", token=text)
    return result


def normalize_relative_dates(text: str, today: date) -> str:
    """Rewrite relative @tokens (@tomorrow, @d3, @fri) as absolute @YYYY/MM/DD."""

    def replace(match: re.Match) -> str:
        try:
            resolved = parse_date_expression(match.group(1), today, ParseContext.ENTRY)
        except DateParseError:
            return match.group(0)
        return "@" + format_date(resolved)

    return RELATIVE_TOKEN_RE.sub(replace, text)
