"""Configuration loading for daybook.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - power users with save hooks
3. Constructing JournalConfig directly - tests and embedding
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from .document import DEFAULT_HEADER_FORMAT, compile_header_format
from .filters import DEFAULT_NEGATION_PREFIX
from .history import DEFAULT_HISTORY_DEPTH

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None


@dataclass
class JournalConfig:
    """Configuration for one journal."""

    journal_name: str = "journal"
    journal_path: Path = field(default_factory=lambda: Path.cwd() / "journal.md")

    # File format
    header_format: str = DEFAULT_HEADER_FORMAT

    # Filter language
    negation_prefix: str = DEFAULT_NEGATION_PREFIX
    saved_filters: dict[str, str] = field(default_factory=dict)   # name -> query
    favorite_tags: dict[str, str] = field(default_factory=dict)   # "1".."9","0" -> tag

    # Editing
    history_depth: int = DEFAULT_HISTORY_DEPTH
    normalize_dates: bool = True  # rewrite @tomorrow etc. as absolute dates on add/edit

    # Hooks (populated from Python config): pre_save(text) -> text, post_save(path)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_saved_filter(self, name: str) -> Optional[str]:
        return self.saved_filters.get(name)

    def list_saved_filters(self) -> list[str]:
        return sorted(self.saved_filters)


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_* become hooks (hook_pre_save, hook_post_save)
    """
    spec = importlib.util.spec_from_file_location("daybook_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["daybook_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    for name in dir(module):
        if name.startswith("hook_"):
            hooks[name[5:]] = getattr(module, name)

    return config_dict, hooks


def dict_to_config(data: dict[str, Any], config_root: Path) -> JournalConfig:
    """Convert dictionary to JournalConfig.

    Relative journal paths are resolved against ``config_root``.

    Raises:
        ValueError: If the header format or a favorite tag key is invalid
    """
    config = JournalConfig(journal_path=config_root / "journal.md")

    if "journal" in data:
        journal = data["journal"]
        if "name" in journal:
            config.journal_name = journal["name"]
        if "path" in journal:
            path = Path(journal["path"]).expanduser()
            config.journal_path = path if path.is_absolute() else config_root / path
        if "header_format" in journal:
            compile_header_format(journal["header_format"])
            config.header_format = journal["header_format"]

    if "filters" in data:
        filters = data["filters"]
        if "negation_prefix" in filters:
            config.negation_prefix = filters["negation_prefix"]
        if "saved" in filters:
            config.saved_filters = dict(filters["saved"])

    if "favorite_tags" in data:
        for key, tag in data["favorite_tags"].items():
            key = str(key)
            if key not in "0123456789" or len(key) != 1:
                raise ValueError(f"Favorite tag keys must be single digits, got '{key}'")
            config.favorite_tags[key] = str(tag).lstrip("#")

    if "editing" in data:
        editing = data["editing"]
        if "history_depth" in editing:
            config.history_depth = int(editing["history_depth"])
        if "normalize_dates" in editing:
            config.normalize_dates = bool(editing["normalize_dates"])

    return config


def find_config_file(config_root: Path) -> Optional[Path]:
    """Find configuration file in a directory.

    Search order:
    1. daybook_config.py (most flexible)
    2. daybook_config.toml
    3. daybook_config.json
    4. .daybook.toml
    5. .daybook.json
    """
    candidates = [
        "daybook_config.py",
        "daybook_config.toml",
        "daybook_config.json",
        ".daybook.toml",
        ".daybook.json",
    ]

    for name in candidates:
        path = config_root / name
        if path.exists():
            return path

    return None


def load_config(config_root: Path, config_path: Optional[Path] = None) -> JournalConfig:
    """Load journal configuration.

    Args:
        config_root: Directory to search for a config file
        config_path: Optional explicit path to config file

    Returns:
        JournalConfig instance
    """
    if config_path is None:
        config_path = find_config_file(config_root)

    if config_path is None:
        return JournalConfig(journal_path=config_root / "journal.md")

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks = load_python_config(config_path)
        config = dict_to_config(config_dict, config_root)
        config.hooks = hooks
        return config

    elif suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), config_root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), config_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
