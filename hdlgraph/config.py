"""Configuration loading for hdlgraph (.hdlgraph.toml)."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from hdlgraph.core.exceptions import ConfigError

CONFIG_FILENAME = ".hdlgraph.toml"
DB_ENV_VAR = "HDLGRAPH_DB"

DEFAULT_EXTENSIONS = [".v", ".sv", ".svh", ".vh"]

DEFAULT_EXCLUDE_DIRS = [
    ".git",
    ".hdlgraph",
    "node_modules",
    "build",
    "dist",
    "__pycache__",
    "venv",
    ".venv",
]

DEFAULT_TEXT_BACKENDS = ["ripgrep", "grep", "scan"]


@dataclass
class IndexConfig:
    """Settings that control discovery, search, and storage."""

    root: Path
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    exclude_patterns: list[str] = field(default_factory=list)
    text_search_backends: list[str] = field(default_factory=lambda: list(DEFAULT_TEXT_BACKENDS))
    max_text_results: int = 500
    db_path: Path | None = None

    @property
    def database(self) -> Path:
        """Resolved database location."""
        if self.db_path is not None:
            return self.db_path
        env_path = os.environ.get(DB_ENV_VAR)
        if env_path:
            return Path(env_path)
        return get_default_db_path(self.root)


def get_default_db_path(project_root: Path) -> Path:
    """Get the default database path for a project."""
    return project_root / ".hdlgraph" / "index.db"


def load_config(root: Path) -> IndexConfig:
    """Load configuration for a repository root.

    Reads the ``[hdlgraph]`` table of ``<root>/.hdlgraph.toml``. A missing file
    yields the defaults.
    """
    root = root.resolve()
    config_file = root / CONFIG_FILENAME
    if not config_file.exists():
        return IndexConfig(root=root)

    try:
        with config_file.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to read {config_file}: {exc}") from exc

    section = data.get("hdlgraph", {})
    if not isinstance(section, dict):
        raise ConfigError(f"[hdlgraph] in {config_file} must be a table")
    return _build_config(root, section)


def _build_config(root: Path, section: dict[str, Any]) -> IndexConfig:
    known = {f.name for f in fields(IndexConfig)} - {"root"}
    unknown = sorted(set(section) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    config = IndexConfig(root=root)
    for key in ("extensions", "exclude_dirs", "exclude_patterns", "text_search_backends"):
        if key in section:
            setattr(config, key, _string_list(key, section[key]))

    if "max_text_results" in section:
        value = section["max_text_results"]
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ConfigError("max_text_results must be a positive integer")
        config.max_text_results = value

    if "db_path" in section:
        value = section["db_path"]
        if not isinstance(value, str):
            raise ConfigError("db_path must be a string")
        db_path = Path(value)
        config.db_path = db_path if db_path.is_absolute() else root / db_path

    config.extensions = [ext if ext.startswith(".") else f".{ext}" for ext in config.extensions]
    return config


def _string_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{key} must be a list of strings")
    return list(value)
