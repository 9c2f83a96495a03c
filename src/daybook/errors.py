"""Exception hierarchy for journal operations."""

from __future__ import annotations

from typing import Optional


class JournalError(Exception):
    """Base exception for journal operations."""
    pass


class ParseError(JournalError):
    """Raised when a date, filter query, or document line cannot be parsed."""

    def __init__(self, message: str, token: Optional[str] = None, position: Optional[int] = None):
        super().__init__(message)
        self.token = token
        self.position = position


class DateParseError(ParseError):
    """Raised when a date expression is not recognized."""
    pass


class InvalidDateError(DateParseError):
    """Raised when a date has out-of-range components (day 32, month 13)."""
    pass


class AmbiguousDateError(DateParseError):
    """Raised when a date expression cannot be disambiguated."""
    pass


class FilterParseError(ParseError):
    """Raised when a filter query contains an invalid token."""
    pass


class NotFoundError(JournalError):
    """Raised when a referenced entry, day, or saved filter is missing."""
    pass


class EntryNotFoundError(NotFoundError):
    """Raised when an entry id is not in the document."""
    pass


class UnknownSavedFilterError(NotFoundError):
    """Raised when a $name reference has no saved filter definition."""
    pass


class InvalidOperationError(JournalError):
    """Raised when an operation is rejected before any mutation."""
    pass


class DuplicateBoundError(InvalidOperationError):
    """Raised when a query has more than one before: or after: bound."""
    pass


class CyclicSavedFilterError(InvalidOperationError):
    """Raised when saved filter expansion refers back to itself."""
    pass


class InvalidDayTargetError(InvalidOperationError):
    """Raised when a move or add targets a day that is not a valid date."""
    pass


class JournalIOError(JournalError):
    """Raised when the journal cannot be read from or written to storage."""
    pass
