"""Tests for reversible operations and the undo/redo log."""

from datetime import date

import pytest

from daybook.document import load_document, serialize_document
from daybook.errors import EntryNotFoundError, InvalidOperationError
from daybook.history import (
    AddEntry,
    Batch,
    DeleteEntry,
    EditEntry,
    MoveEntry,
    Reorder,
    ToggleComplete,
    UndoLog,
)
from daybook.models import EntryKind
from daybook.store import JournalStore

from conftest import SAMPLE_JOURNAL, find_entry


MONDAY = date(2025, 1, 13)
WEDNESDAY = date(2025, 1, 15)


@pytest.fixture
def log():
    return UndoLog()


def text_of(store):
    return serialize_document(store.document)


class TestInverses:
    """Each operation followed by undo restores the document."""

    def test_add(self, store, log):
        entry, record = log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "New"))
        assert record.affected_days == (WEDNESDAY,)
        log.undo(store)
        assert entry.id not in store.document
        assert text_of(store) == SAMPLE_JOURNAL

    def test_delete(self, store, log):
        entry = find_entry(store.document, "Send invoice")
        log.apply(store, DeleteEntry(entry.id))
        log.undo(store)
        assert store.get_entry(entry.id).text == "Send invoice #work"
        assert text_of(store) == SAMPLE_JOURNAL

    def test_edit(self, store, log):
        entry = find_entry(store.document, "Send invoice")
        log.apply(store, EditEntry(entry.id, "Changed", EntryKind.EVENT))
        log.undo(store)
        assert entry.kind is EntryKind.TASK
        assert entry.completed is True
        assert text_of(store) == SAMPLE_JOURNAL

    def test_edit_restores_markers(self, store, log):
        entry = find_entry(store.document, "Water plants")
        log.apply(store, ToggleComplete(entry.id, WEDNESDAY))
        before = text_of(store)
        log.apply(store, EditEntry(entry.id, "Water plants once"))
        assert store.document.marker_days(entry.id) == []
        log.undo(store)
        assert text_of(store) == before

    def test_toggle(self, store, log):
        entry = find_entry(store.document, "Water plants")
        _, record = log.apply(store, ToggleComplete(entry.id, WEDNESDAY))
        assert record.affected_days == (date(2025, 1, 14), WEDNESDAY)
        log.undo(store)
        assert text_of(store) == SAMPLE_JOURNAL

    def test_reorder(self, store, log):
        ids = [e.id for e in store.entries_on(MONDAY)]
        log.apply(store, Reorder(MONDAY, list(reversed(ids))))
        log.undo(store)
        assert text_of(store) == SAMPLE_JOURNAL

    def test_move(self, store, log):
        entry = find_entry(store.document, "Lunch with Sam")
        _, record = log.apply(store, MoveEntry(entry.id, WEDNESDAY))
        assert record.affected_days == (MONDAY, WEDNESDAY)
        log.undo(store)
        assert entry.origin_day == MONDAY
        assert text_of(store) == SAMPLE_JOURNAL

    def test_batch_undoes_as_one(self, store, log):
        batch = Batch([
            AddEntry(WEDNESDAY, EntryKind.NOTE, "one"),
            AddEntry(WEDNESDAY, EntryKind.NOTE, "two"),
        ], label="Pasted 2 entries")
        results, record = log.apply(store, batch)
        assert [e.text for e in results] == ["one", "two"]
        assert record.description == "Pasted 2 entries"
        log.undo(store)
        assert text_of(store) == SAMPLE_JOURNAL

    def test_failed_batch_rolls_back(self, store, log):
        batch = Batch([AddEntry(WEDNESDAY, EntryKind.NOTE, "one"), DeleteEntry(999)])
        with pytest.raises(EntryNotFoundError):
            log.apply(store, batch)
        assert text_of(store) == SAMPLE_JOURNAL
        assert not log.can_undo


INTERLEAVED = "# 2025/01/15\n- [ ] first\n## Afternoon\n- [ ] second\n"


@pytest.fixture
def interleaved():
    return JournalStore(load_document(INTERLEAVED))


class TestInterleavedText:
    """Undo keeps entries on the same side of the text around them."""

    def test_delete_then_undo(self, interleaved, log):
        second = find_entry(interleaved.document, "second")
        log.apply(interleaved, DeleteEntry(second.id))
        assert text_of(interleaved) == "# 2025/01/15\n- [ ] first\n## Afternoon\n"

        log.undo(interleaved)
        assert text_of(interleaved) == INTERLEAVED
        assert interleaved.document == load_document(INTERLEAVED)

    def test_delete_first_then_undo(self, interleaved, log):
        first = find_entry(interleaved.document, "first")
        log.apply(interleaved, DeleteEntry(first.id))
        log.undo(interleaved)
        assert text_of(interleaved) == INTERLEAVED

    def test_move_then_undo_and_redo(self, interleaved, log):
        second = find_entry(interleaved.document, "second")
        log.apply(interleaved, MoveEntry(second.id, date(2025, 1, 16)))
        moved = text_of(interleaved)
        assert moved.endswith("# 2025/01/16\n- [ ] second\n")

        log.undo(interleaved)
        assert text_of(interleaved) == INTERLEAVED
        assert interleaved.document == load_document(INTERLEAVED)

        log.redo(interleaved)
        assert text_of(interleaved) == moved
        log.undo(interleaved)
        assert text_of(interleaved) == INTERLEAVED

    def test_batch_delete_then_undo(self, interleaved, log):
        ids = [entry.id for entry in interleaved.document.iter_entries()]
        log.apply(interleaved, Batch([DeleteEntry(entry_id) for entry_id in ids]))
        assert text_of(interleaved) == "# 2025/01/15\n## Afternoon\n"
        log.undo(interleaved)
        assert text_of(interleaved) == INTERLEAVED


class TestUndoLog:
    """Tests for stack behavior."""

    def test_redo_after_undo(self, store, log):
        log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "New"))
        after = text_of(store)
        log.undo(store)
        log.redo(store)
        assert text_of(store) == after

    def test_redo_of_delete_keeps_id(self, store, log):
        entry = find_entry(store.document, "Send invoice")
        log.apply(store, DeleteEntry(entry.id))
        log.undo(store)
        log.redo(store)
        assert entry.id not in store.document
        log.undo(store)
        assert entry.id in store.document

    def test_new_operation_clears_redo(self, store, log):
        log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "a"))
        log.undo(store)
        assert log.can_redo
        log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "b"))
        assert not log.can_redo
        assert log.redo(store) is None

    def test_empty_stacks_are_no_ops(self, store, log):
        assert log.undo(store) is None
        assert log.redo(store) is None
        assert text_of(store) == SAMPLE_JOURNAL

    def test_undo_after_invalidate_is_no_op(self, store, log):
        log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "a"))
        after = text_of(store)
        log.invalidate()
        assert log.undo(store) is None
        assert text_of(store) == after

    def test_failed_operation_leaves_stacks(self, store, log):
        log.apply(store, AddEntry(WEDNESDAY, EntryKind.TASK, "a"))
        log.undo(store)
        with pytest.raises(InvalidOperationError):
            log.apply(store, Reorder(MONDAY, [1]))
        assert log.can_redo
        assert not log.can_undo

    def test_depth_is_bounded(self, store):
        log = UndoLog(max_depth=3)
        for i in range(5):
            log.apply(store, AddEntry(WEDNESDAY, EntryKind.NOTE, f"n{i}"))
        assert len(log.undo_stack) == 3
        for _ in range(3):
            log.undo(store)
        assert log.undo(store) is None
        assert [e.text for e in store.entries_on(WEDNESDAY)][-2:] == ["n0", "n1"]

    def test_sequence_numbers_increase(self, store, log):
        _, first = log.apply(store, AddEntry(WEDNESDAY, EntryKind.NOTE, "a"))
        _, second = log.apply(store, AddEntry(WEDNESDAY, EntryKind.NOTE, "b"))
        assert second.sequence_number > first.sequence_number

    def test_undo_returns_record_with_description(self, store, log):
        entry = find_entry(store.document, "Write report")
        log.apply(store, DeleteEntry(entry.id))
        record = log.undo(store)
        assert record.description == "Deleted entry"
