"""Shared pytest fixtures for daybook tests."""

import tempfile
from datetime import date
from pathlib import Path

import pytest
from loguru import logger

from daybook.config import JournalConfig
from daybook.document import load_document
from daybook.engine import JournalEngine
from daybook.store import JournalStore


TODAY = date(2025, 1, 15)  # a Wednesday

SAMPLE_JOURNAL = """\
Journal notes before the first day.

# 2025/01/13
- [ ] Write report #work
- [x] Send invoice #work
- Lunch with Sam #personal
* Standup 9:30 #work

# 2025/01/14
- [ ] Water plants @every-day
- [ ] Review PRs @every-weekday #work
Some free-form text that is kept.

# 2025/01/15
- [ ] Buy milk @tomorrow
- Idea: write a parser
"""


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return JournalConfig(
        journal_name="test-journal",
        journal_path=temp_project / "journal.md",
    )


@pytest.fixture
def engine(config):
    """Create a test engine with a fixed today."""
    return JournalEngine(config, today=TODAY)


@pytest.fixture
def sample_engine(engine):
    """Engine with SAMPLE_JOURNAL loaded."""
    engine.load_text(SAMPLE_JOURNAL)
    return engine


@pytest.fixture
def sample_document():
    return load_document(SAMPLE_JOURNAL)


@pytest.fixture
def store(sample_document):
    return JournalStore(sample_document)


@pytest.fixture
def log_messages():
    """Capture loguru records as ``(level, message)`` tuples."""
    messages = []
    handler_id = logger.add(
        lambda message: messages.append((message.record["level"].name, message.record["message"])),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


def find_entry(document, text):
    """Return the first entry whose text contains ``text``."""
    for entry in document.iter_entries():
        if text in entry.text:
            return entry
    raise AssertionError(f"No entry containing {text!r}")
