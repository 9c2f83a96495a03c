"""Daybook Configuration - Python Example

Copy to your project root as daybook_config.py.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become save hooks
"""

import subprocess
from pathlib import Path

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "journal": {
        "name": "work",
        "path": "notes/journal.md",
        "header_format": "# %Y/%m/%d",
    },
    "filters": {
        "negation_prefix": "not:",
        "saved": {
            "open": "!tasks",
            "openwork": "$open #work",
            "stale": "!tasks before:yesterday",
        },
    },
    "favorite_tags": {
        "1": "work",
        "2": "home",
        "3": "errands",
    },
    "editing": {
        "history_depth": 100,
        "normalize_dates": True,
    },
}


# =============================================================================
# Hooks - Called by JournalEngine.save()
# =============================================================================

def hook_pre_save(text: str) -> str:
    """Called with the serialized journal; returns the text to write."""
    return text.rstrip("\n") + "\n" if text else text


def hook_post_save(path: Path) -> None:
    """Called after the journal has been written.

    Commits the journal if it lives inside a git checkout.
    """
    result = subprocess.run(
        ["git", "-C", str(path.parent), "rev-parse", "--is-inside-work-tree"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        return
    subprocess.run(["git", "-C", str(path.parent), "add", path.name], check=False)
    subprocess.run(
        ["git", "-C", str(path.parent), "commit", "-q", "-m", "Update journal"],
        check=False,
    )
