"""Tests for loading and serializing journal documents."""

from datetime import date

import pytest

from daybook.dates import WeeklyOn
from daybook.document import (
    HeaderFormat,
    compile_header_format,
    load_document,
    serialize_document,
)
from daybook.models import EntryKind, OneTime, Recurring

from conftest import SAMPLE_JOURNAL, find_entry


class TestLoading:
    """Tests for load_document."""

    def test_spec_example_one_time_schedule(self):
        """A relative @date resolves against the entry's own day."""
        document = load_document("# 2025/01/15\n- [ ] Buy milk @tomorrow\n")
        entries = list(document.iter_entries())
        assert len(entries) == 1
        assert entries[0].schedule == OneTime(date(2025, 1, 16))
        assert entries[0].origin_day == date(2025, 1, 15)

    def test_entry_markers(self):
        document = load_document(
            "# 2025/01/15\n- [ ] open\n- [x] done\n- [X] also done\n- note\n* event\n"
        )
        entries = list(document.iter_entries())
        assert [(e.kind, e.completed, e.text) for e in entries] == [
            (EntryKind.TASK, False, "open"),
            (EntryKind.TASK, True, "done"),
            (EntryKind.TASK, True, "also done"),
            (EntryKind.NOTE, False, "note"),
            (EntryKind.EVENT, False, "event"),
        ]

    def test_ids_are_unique(self, sample_document):
        ids = [entry.id for entry in sample_document.iter_entries()]
        assert len(ids) == len(set(ids)) == len(sample_document)

    def test_order_within_day(self, sample_document):
        bucket = sample_document.bucket(date(2025, 1, 13))
        assert [entry.order for entry in bucket.entries()] == [0, 1, 2, 3]

    def test_preamble_and_free_text_kept(self, sample_document):
        assert sample_document.preamble == ["Journal notes before the first day.", ""]
        bucket = sample_document.bucket(date(2025, 1, 14))
        assert "Some free-form text that is kept." in bucket.items

    def test_indented_lines_are_not_entries(self):
        document = load_document("# 2025/01/15\n- parent\n  - child detail\n")
        assert len(document) == 1
        assert "  - child detail" in document.bucket(date(2025, 1, 15)).items

    def test_tags_and_recurrence(self, sample_document):
        entry = find_entry(sample_document, "Review PRs")
        assert entry.tags == ("work",)
        assert entry.is_recurring

    def test_header_with_trailing_text(self):
        document = load_document("# 2025/01/15 Wednesday\n- note\n")
        assert document.bucket(date(2025, 1, 15)).header == "# 2025/01/15 Wednesday"

    def test_duplicate_headers_merge(self, log_messages):
        text = "# 2025/01/15\n- first\n# 2025/01/15\n- second\n"
        document = load_document(text)
        bucket = document.bucket(date(2025, 1, 15))
        assert [e.text for e in bucket.entries()] == ["first", "second"]
        assert any(level == "WARNING" and "Duplicate header" in msg for level, msg in log_messages)

    def test_done_tokens_become_markers_on_recurring_entries(self):
        document = load_document("# 2025/01/13\n- [ ] Stretch @every-day @done:2025/01/14\n")
        entry = next(document.iter_entries())
        assert entry.text == "Stretch @every-day"
        assert document.marker_days(entry.id) == [date(2025, 1, 14)]

    def test_done_tokens_kept_as_text_on_plain_entries(self):
        document = load_document("# 2025/01/13\n- [ ] Stretch @done:2025/01/14\n")
        entry = next(document.iter_entries())
        assert entry.text == "Stretch @done:2025/01/14"
        assert document.completion_markers() == []

    def test_done_token_with_impossible_date_stays_in_text(self):
        """Only done tokens naming a real day turn into markers."""
        text = "# 2025/01/13\n- [ ] Water @every-day @done:2025/01/15 @done:2025/02/30 keep\n"
        document = load_document(text)
        entry = next(document.iter_entries())
        assert entry.text == "Water @every-day @done:2025/02/30 keep"
        assert document.marker_days(entry.id) == [date(2025, 1, 15)]

        saved = serialize_document(document)
        assert saved == "# 2025/01/13\n- [ ] Water @every-day @done:2025/02/30 keep @done:2025/01/15\n"
        assert load_document(saved) == document

    def test_custom_header_format(self):
        document = load_document("## Jan 15, 2025\n- note\n", header_format="## %b %d, %Y")
        assert document.bucket(date(2025, 1, 15)) is not None

    def test_weekly_schedule(self):
        document = load_document("# 2025/01/15\n- [ ] Trash @every-thu\n")
        assert next(document.iter_entries()).schedule == Recurring(WeeklyOn(3))


class TestSerializing:
    """Tests for serialize_document."""

    def test_sample_round_trips_exactly(self):
        assert serialize_document(load_document(SAMPLE_JOURNAL)) == SAMPLE_JOURNAL

    @pytest.mark.parametrize("text", [
        "",
        "just a line",
        "just a line\n",
        "line one\n\nline three\n",
        "# 2025/01/15\nfree text only\n",
        "a\r\nb\r\n",
    ])
    def test_preserved_only_text_is_byte_identical(self, text):
        assert serialize_document(load_document(text)) == text

    def test_crlf_entries_keep_crlf(self):
        text = "# 2025/01/15\r\n- [ ] task\r\n"
        assert serialize_document(load_document(text)) == text

    def test_entry_lines_are_normalized(self):
        document = load_document("# 2025/01/15\n- [X] shouted\n")
        assert serialize_document(document) == "# 2025/01/15\n- [x] shouted\n"

    def test_empty_days_are_pruned(self):
        document = load_document("# 2025/01/14\n\n# 2025/01/15\n- note\n")
        assert serialize_document(document) == "# 2025/01/15\n- note\n"

    def test_day_with_only_text_is_kept(self):
        text = "# 2025/01/14\nremember this\n"
        assert serialize_document(load_document(text)) == text

    def test_markers_serialize_as_done_tokens(self):
        text = "# 2025/01/13\n- [ ] Stretch @every-day @done:2025/01/13 @done:2025/01/14\n"
        assert serialize_document(load_document(text)) == text

    def test_structural_round_trip(self, sample_document):
        assert load_document(serialize_document(sample_document)) == sample_document

    def test_new_day_inserted_in_date_order(self, sample_document):
        sample_document.ensure_bucket(date(2025, 1, 10))
        sample_document.ensure_bucket(date(2025, 1, 20))
        assert list(sample_document.days)[0] == date(2025, 1, 10)
        assert list(sample_document.days)[-1] == date(2025, 1, 20)


class TestHeaderFormat:
    """Tests for configurable header formats."""

    def test_render_and_parse(self):
        headers = HeaderFormat("# %Y-%m-%d")
        assert headers.render(date(2025, 1, 5)) == "# 2025-01-05"
        assert headers.parse("# 2025-01-05") == date(2025, 1, 5)

    def test_non_headers(self):
        headers = HeaderFormat()
        assert headers.parse("# Notes") is None
        assert headers.parse("# 2025/13/40") is None

    def test_unsupported_directive(self):
        with pytest.raises(ValueError):
            compile_header_format("# %H:%M")
