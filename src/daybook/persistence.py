"""Reading and writing journal files.

Writes take an exclusive ``.lock`` file next to the journal and go through a
temporary file renamed over the target, so a crash mid-write never leaves a
truncated journal behind.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker
from loguru import logger

from .errors import JournalIOError


@contextmanager
def journal_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on ``<journal>.lock`` for the duration.

    Raises:
        JournalIOError: If the lock cannot be acquired in time
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with portalocker.Lock(str(lock_path), timeout=timeout):
            yield
    except portalocker.LockException as e:
        raise JournalIOError(f"Journal is locked: {path}") from e


def read_journal(path: Path) -> str:
    """Return the journal text, or an empty string if the file does not exist."""
    if not path.exists():
        return ""
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as e:
        raise JournalIOError(f"Cannot read journal {path}: {e}") from e


def write_journal(path: Path, text: str, timeout: float = 10.0) -> None:
    """Atomically replace the journal at ``path`` with ``text``.

    Raises:
        JournalIOError: If the file cannot be locked or written; the
            previous file contents are left intact
    """
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise JournalIOError(f"Cannot create journal directory {path.parent}: {e}") from e

    with journal_lock(path, timeout=timeout):
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
            os.replace(tmp_path, path)
        except OSError as e:
            if tmp_path.exists():
                tmp_path.unlink()
            raise JournalIOError(f"Cannot write journal {path}: {e}") from e

    logger.info(f"Saved journal to {path} ({len(text)} bytes)")
