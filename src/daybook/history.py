"""Undo/redo log built from reversible operations.

Each operation applies itself to a JournalStore and hands back the operation
that reverses it. The log keeps those inverses on a bounded undo stack;
undoing applies one and pushes *its* inverse onto the redo stack. Records
hold only the parameters needed to reverse a change, never a copy of the
document.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import date
from typing import Any, NamedTuple, Optional

from loguru import logger

from .models import EntryKind, EntrySnapshot
from .store import JournalStore


DEFAULT_HISTORY_DEPTH = 50


class Applied(NamedTuple):
    """Outcome of applying an operation."""
    result: Any
    inverse: "Operation"
    days: tuple[date, ...]


class Operation:
    """A reversible change to the store."""

    description = "Changed entry"
    reversed_description = "Reverted entry"

    def apply(self, store: JournalStore) -> Applied:
        raise NotImplementedError


@dataclass
class AddEntry(Operation):
    day: date
    kind: EntryKind
    text: str
    position: Optional[int] = None
    completed: bool = False

    description = "Added entry"
    reversed_description = "Removed entry"

    def apply(self, store: JournalStore) -> Applied:
        entry = store.add_entry(self.day, self.position, self.kind, self.text, self.completed)
        return Applied(entry, DeleteEntry(entry.id), (entry.origin_day,))


@dataclass
class DeleteEntry(Operation):
    entry_id: int

    description = "Deleted entry"
    reversed_description = "Restored entry"

    def apply(self, store: JournalStore) -> Applied:
        snapshot = store.delete_entry(self.entry_id)
        return Applied(snapshot, RestoreEntry(snapshot), (snapshot.origin_day,))


@dataclass
class RestoreEntry(Operation):
    snapshot: EntrySnapshot

    description = "Restored entry"
    reversed_description = "Deleted entry"

    def apply(self, store: JournalStore) -> Applied:
        entry = store.restore_entry(self.snapshot)
        return Applied(entry, DeleteEntry(entry.id), (entry.origin_day,))


@dataclass
class EditEntry(Operation):
    """Replace text and optionally kind, completion flag and markers."""
    entry_id: int
    text: str
    kind: Optional[EntryKind] = None
    completed: Optional[bool] = None
    done_days: Optional[list[date]] = None

    description = "Edited entry"
    reversed_description = "Reverted edit"

    def apply(self, store: JournalStore) -> Applied:
        prior = store.snapshot(self.entry_id)
        entry = store.edit_entry(self.entry_id, self.text, self.kind)
        if self.completed is not None and entry.kind is EntryKind.TASK:
            store.set_completed(entry.id, self.completed)
        if self.done_days is not None:
            store.set_markers(entry.id, self.done_days)
        inverse = EditEntry(
            entry_id=prior.id,
            text=prior.text,
            kind=prior.kind,
            completed=prior.completed,
            done_days=list(prior.done_days),
        )
        return Applied(entry, inverse, (entry.origin_day,))


@dataclass
class ToggleComplete(Operation):
    entry_id: int
    occurrence_day: date

    description = "Toggled completion"
    reversed_description = "Toggled completion back"

    def apply(self, store: JournalStore) -> Applied:
        state = store.toggle_complete(self.entry_id, self.occurrence_day)
        origin_day, _ = store.locate(self.entry_id)
        days = tuple(sorted({origin_day, self.occurrence_day}))
        return Applied(state, ToggleComplete(self.entry_id, self.occurrence_day), days)


@dataclass
class Reorder(Operation):
    day: date
    order: list[int]

    description = "Reordered entries"
    reversed_description = "Restored order"

    def apply(self, store: JournalStore) -> Applied:
        previous = store.reorder(self.day, self.order)
        return Applied(previous, Reorder(self.day, previous), (self.day,))


@dataclass
class MoveEntry(Operation):
    entry_id: int
    day: date
    position: Optional[int] = None
    index: Optional[int] = None

    description = "Moved entry"
    reversed_description = "Moved entry back"

    def apply(self, store: JournalStore) -> Applied:
        prior = store.snapshot(self.entry_id)
        previous_day, previous_position = store.move_entry(
            self.entry_id, self.day, self.position, self.index
        )
        inverse = MoveEntry(self.entry_id, previous_day, previous_position, prior.index)
        return Applied(store.get_entry(self.entry_id), inverse, tuple(sorted({previous_day, self.day})))


@dataclass
class Batch(Operation):
    """Several operations applied, and undone, as one."""
    operations: list[Operation] = field(default_factory=list)
    label: str = "Changed entries"

    @property
    def description(self) -> str:  # type: ignore[override]
        return self.label

    def apply(self, store: JournalStore) -> Applied:
        results = []
        inverses: list[Operation] = []
        days: set[date] = set()
        try:
            for operation in self.operations:
                applied = operation.apply(store)
                results.append(applied.result)
                inverses.append(applied.inverse)
                days.update(applied.days)
        except Exception:
            for inverse in reversed(inverses):
                inverse.apply(store)
            raise
        inverse_batch = Batch(list(reversed(inverses)), label=self.label)
        return Applied(results, inverse_batch, tuple(sorted(days)))


@dataclass
class UndoRecord:
    """An entry on the undo or redo stack."""
    operation: Operation
    affected_days: tuple[date, ...]
    sequence_number: int
    description: str


class UndoLog:
    """Linear undo stack plus redo stack, bounded to ``max_depth`` records."""

    def __init__(self, max_depth: int = DEFAULT_HISTORY_DEPTH):
        self.max_depth = max_depth
        self.undo_stack: list[UndoRecord] = []
        self.redo_stack: list[UndoRecord] = []
        self._sequence = itertools.count(1)

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def apply(self, store: JournalStore, operation: Operation) -> tuple[Any, UndoRecord]:
        """Apply ``operation`` and record its inverse.

        Returns:
            ``(result, record)`` where ``result`` is what the store returned

        Raises:
            JournalError: Whatever the store raised; stacks are untouched
        """
        applied = operation.apply(store)
        record = UndoRecord(
            operation=applied.inverse,
            affected_days=applied.days,
            sequence_number=next(self._sequence),
            description=operation.description,
        )
        self.undo_stack.append(record)
        if len(self.undo_stack) > self.max_depth:
            self.undo_stack.pop(0)
        self.redo_stack.clear()
        logger.debug(f"Applied #{record.sequence_number}: {record.description}")
        return applied.result, record

    def undo(self, store: JournalStore) -> Optional[UndoRecord]:
        """Revert the most recent record; None when there is nothing to undo."""
        if not self.undo_stack:
            return None
        record = self.undo_stack[-1]
        applied = record.operation.apply(store)
        self.undo_stack.pop()
        self.redo_stack.append(UndoRecord(
            operation=applied.inverse,
            affected_days=applied.days,
            sequence_number=record.sequence_number,
            description=record.description,
        ))
        logger.debug(f"Undid #{record.sequence_number}: {record.description}")
        return record

    def redo(self, store: JournalStore) -> Optional[UndoRecord]:
        """Reapply the most recently undone record; None when there is none."""
        if not self.redo_stack:
            return None
        record = self.redo_stack[-1]
        applied = record.operation.apply(store)
        self.redo_stack.pop()
        self.undo_stack.append(UndoRecord(
            operation=applied.inverse,
            affected_days=applied.days,
            sequence_number=record.sequence_number,
            description=record.description,
        ))
        logger.debug(f"Redid #{record.sequence_number}: {record.description}")
        return record

    def invalidate(self) -> None:
        """Forget all history; called on day, filter, or journal changes."""
        if self.undo_stack or self.redo_stack:
            logger.debug("Undo history cleared")
        self.undo_stack.clear()
        self.redo_stack.clear()
