"""Filter engine - parse query strings into predicates and run them.

Query language (whitespace separated tokens):

    !tasks !completed !notes !events   entry type (OR among themselves)
    #tag                               entry has tag
    word                               case-insensitive substring
    $name                              saved filter, expanded recursively
    not:#tag  not:!notes  not:word     negation (OR among themselves)
    before:DATE  after:DATE            inclusive bounds on the entry's day
    @overdue  @later  @recurring       schedule flags

Positive predicates of different kinds AND together. An entry is excluded
if it matches any negated predicate. An empty query matches everything.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Iterator, Optional

from .dates import ParseContext, parse_date_expression
from .document import Document
from .errors import (
    CyclicSavedFilterError,
    DateParseError,
    DuplicateBoundError,
    FilterParseError,
    UnknownSavedFilterError,
)
from .models import TAG_RE, Entry, EntryKind, OneTime, Recurring


SAVED_FILTER_RE = re.compile(r"\$(\w+)\b")
FAVORITE_TAG_RE = re.compile(r"#([0-9])\b")
_TOKEN_RE = re.compile(r"\S+")

DEFAULT_NEGATION_PREFIX = "not:"

# keyword -> (kind, completed)
TYPE_KEYWORDS = {
    "tasks": (EntryKind.TASK, False),
    "task": (EntryKind.TASK, False),
    "t": (EntryKind.TASK, False),
    "completed": (EntryKind.TASK, True),
    "c": (EntryKind.TASK, True),
    "notes": (EntryKind.NOTE, None),
    "note": (EntryKind.NOTE, None),
    "n": (EntryKind.NOTE, None),
    "events": (EntryKind.EVENT, None),
    "event": (EntryKind.EVENT, None),
    "e": (EntryKind.EVENT, None),
}


# ========== Predicates ==========


class Predicate:
    """Base class for filter predicates."""

    def matches(self, entry: Entry) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class MatchAll(Predicate):
    def matches(self, entry: Entry) -> bool:
        return True


@dataclass(frozen=True)
class KindIs(Predicate):
    """Entry kind, optionally restricted to a completion state."""
    kind: EntryKind
    completed: Optional[bool] = None

    def matches(self, entry: Entry) -> bool:
        if entry.kind is not self.kind:
            return False
        return self.completed is None or entry.completed == self.completed


@dataclass(frozen=True)
class HasTag(Predicate):
    tag: str

    def matches(self, entry: Entry) -> bool:
        return entry.has_tag(self.tag)


@dataclass(frozen=True)
class ContainsText(Predicate):
    term: str

    def matches(self, entry: Entry) -> bool:
        return self.term.lower() in entry.text.lower()


@dataclass(frozen=True)
class OnOrBefore(Predicate):
    day: date

    def matches(self, entry: Entry) -> bool:
        return entry.origin_day <= self.day


@dataclass(frozen=True)
class OnOrAfter(Predicate):
    day: date

    def matches(self, entry: Entry) -> bool:
        return entry.origin_day >= self.day


@dataclass(frozen=True)
class Overdue(Predicate):
    """One-time schedule targeting a day before ``today``."""
    today: date

    def matches(self, entry: Entry) -> bool:
        schedule = entry.schedule
        return isinstance(schedule, OneTime) and schedule.day < self.today


@dataclass(frozen=True)
class HasOneTime(Predicate):
    def matches(self, entry: Entry) -> bool:
        return isinstance(entry.schedule, OneTime)


@dataclass(frozen=True)
class IsRecurring(Predicate):
    def matches(self, entry: Entry) -> bool:
        return isinstance(entry.schedule, Recurring)


@dataclass(frozen=True)
class Not(Predicate):
    operand: Predicate

    def matches(self, entry: Entry) -> bool:
        return not self.operand.matches(entry)


@dataclass(frozen=True)
class AnyOf(Predicate):
    operands: tuple[Predicate, ...]

    def matches(self, entry: Entry) -> bool:
        return any(p.matches(entry) for p in self.operands)


@dataclass(frozen=True)
class AllOf(Predicate):
    operands: tuple[Predicate, ...]

    def matches(self, entry: Entry) -> bool:
        return all(p.matches(entry) for p in self.operands)


# ========== Expansion ==========


def expand_saved_filters(query: str, saved_filters: dict[str, str], _stack: tuple[str, ...] = ()) -> str:
    """Replace ``$name`` references with their definitions, recursively.

    Raises:
        UnknownSavedFilterError: If a reference has no definition
        CyclicSavedFilterError: If a definition refers back to itself
    """

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name in _stack:
            chain = " -> ".join(_stack + (name,))
            raise CyclicSavedFilterError(f"Saved filter cycle: ${chain}")
        if name not in saved_filters:
            raise UnknownSavedFilterError(f"Unknown saved filter: ${name}")
        return expand_saved_filters(saved_filters[name], saved_filters, _stack + (name,))

    return SAVED_FILTER_RE.sub(replace, query)


def expand_favorite_tags(text: str, favorite_tags: dict[str, str]) -> str:
    """Replace ``#1``..``#9`` and ``#0`` with configured favorite tags.

    Digits without a configured tag are left unchanged.
    """

    def replace(match: re.Match) -> str:
        tag = favorite_tags.get(match.group(1))
        return f"#{tag}" if tag else match.group(0)

    return FAVORITE_TAG_RE.sub(replace, text)


# ========== Parsing ==========


def _parse_bound(value: str, token: str, position: int, today: date) -> date:
    try:
        return parse_date_expression(value, today, ParseContext.FILTER)
    except DateParseError as e:
        raise FilterParseError(f"Invalid date in '{token}': {e}", token=token, position=position) from e


def _parse_type(keyword: str, token: str, position: int) -> tuple[EntryKind, Optional[bool]]:
    if keyword not in TYPE_KEYWORDS:
        raise FilterParseError(f"Unknown entry type: '{token}'", token=token, position=position)
    return TYPE_KEYWORDS[keyword]


def _parse_tag(name: str, token: str, position: int) -> str:
    if not TAG_RE.fullmatch("#" + name):
        raise FilterParseError(f"Invalid tag: '{token}'", token=token, position=position)
    return name


def _expanded_tokens(
    query: str,
    saved_filters: dict[str, str],
    favorite_tags: dict[str, str],
) -> Iterator[tuple[str, int]]:
    """Yield ``(token, position)`` after expansion.

    Positions are offsets into ``query`` as typed. Every token produced by
    expanding a ``$name`` or ``#N`` reports where that reference starts.
    """
    for match in _TOKEN_RE.finditer(query):
        written = match.group(0)
        expanded = expand_saved_filters(written, saved_filters)
        if favorite_tags:
            expanded = expand_favorite_tags(expanded, favorite_tags)
        for part in _TOKEN_RE.finditer(expanded):
            yield part.group(0), match.start()


def parse(
    query: str,
    saved_filters: Optional[dict[str, str]] = None,
    negation_prefix: str = DEFAULT_NEGATION_PREFIX,
    today: Optional[date] = None,
    favorite_tags: Optional[dict[str, str]] = None,
) -> Predicate:
    """Parse a filter query into a predicate tree.

    Args:
        query: Query text
        saved_filters: Definitions for ``$name`` references
        negation_prefix: Token prefix that negates a predicate
        today: Reference day for relative dates and ``@overdue``
        favorite_tags: Digit -> tag map for ``#1``..``#0`` shortcuts

    Returns:
        The predicate; ``MatchAll`` for an empty query

    Raises:
        FilterParseError: On an unknown type, flag, tag, or bad date
        DuplicateBoundError: On a second before: or after: bound
        UnknownSavedFilterError: On an undefined ``$name``
        CyclicSavedFilterError: On recursive saved filter definitions
    """
    today = today or date.today()

    kinds: list[Predicate] = []
    positives: list[Predicate] = []
    negated: list[Predicate] = []
    before: Optional[date] = None
    after: Optional[date] = None

    for token, position in _expanded_tokens(query, saved_filters or {}, favorite_tags or {}):
        bare = token[1:] if token.startswith("@") else token

        if bare.startswith("before:"):
            if before is not None:
                raise DuplicateBoundError(f"Multiple before: bounds ('{token}')")
            before = _parse_bound(bare[len("before:"):], token, position, today)
            continue
        if bare.startswith("after:"):
            if after is not None:
                raise DuplicateBoundError(f"Multiple after: bounds ('{token}')")
            after = _parse_bound(bare[len("after:"):], token, position, today)
            continue

        if token == "@overdue":
            positives.append(Overdue(today))
            continue
        if token == "@later":
            positives.append(HasOneTime())
            continue
        if token == "@recurring":
            positives.append(IsRecurring())
            continue
        if token.startswith("@"):
            raise FilterParseError(f"Unknown filter token: '{token}'", token=token, position=position)

        if negation_prefix and token.startswith(negation_prefix):
            negated_text = token[len(negation_prefix):]
            if negated_text.startswith("#"):
                negated.append(HasTag(_parse_tag(negated_text[1:], token, position)))
            elif negated_text.startswith("!"):
                kind, _ = _parse_type(negated_text[1:], token, position)
                completed = True if negated_text[1:] in ("completed", "c") else None
                negated.append(KindIs(kind, completed))
            elif negated_text:
                negated.append(ContainsText(negated_text))
            else:
                raise FilterParseError("Empty negation", token=token, position=position)
            continue

        if token.startswith("!"):
            kind, completed = _parse_type(token[1:], token, position)
            predicate = KindIs(kind, completed)
            if predicate not in kinds:
                kinds.append(predicate)
        elif token.startswith("#"):
            positives.append(HasTag(_parse_tag(token[1:], token, position)))
        else:
            positives.append(ContainsText(token))

    conjuncts: list[Predicate] = []
    if kinds:
        conjuncts.append(kinds[0] if len(kinds) == 1 else AnyOf(tuple(kinds)))
    conjuncts.extend(positives)
    if before is not None:
        conjuncts.append(OnOrBefore(before))
    if after is not None:
        conjuncts.append(OnOrAfter(after))
    if negated:
        conjuncts.append(Not(negated[0] if len(negated) == 1 else AnyOf(tuple(negated))))

    if not conjuncts:
        return MatchAll()
    return AllOf(tuple(conjuncts))


# ========== Evaluation ==========


def evaluate(predicate: Predicate, document: Document) -> list[tuple[Entry, date]]:
    """Entries matching ``predicate``, in chronological day then stored order."""
    results = []
    for bucket in document.chronological():
        for entry in bucket.entries():
            if predicate.matches(entry):
                results.append((entry, bucket.day))
    return results


def run_filter(
    document: Document,
    query: str,
    saved_filters: Optional[dict[str, str]] = None,
    negation_prefix: str = DEFAULT_NEGATION_PREFIX,
    today: Optional[date] = None,
    favorite_tags: Optional[dict[str, str]] = None,
) -> list[tuple[Entry, date]]:
    """Parse ``query`` and evaluate it against ``document``."""
    predicate = parse(query, saved_filters, negation_prefix, today, favorite_tags)
    return evaluate(predicate, document)
