"""Runtime configuration for Portal Files.

Settings come from explicit arguments first, then environment variables,
then defaults:

    PORTAL_FILES_ROOT                 sandbox root directory
    PORTAL_FILES_CHUNK_SIZE           streaming chunk size in bytes
    PORTAL_FILES_SEARCH_CAP           default search result cap
    PORTAL_FILES_MAX_RENAME_ATTEMPTS  auto-rename attempt budget
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from portal_files.core.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RENAME_ATTEMPTS,
    DEFAULT_SEARCH_CAP,
    ROOT_DIRNAME,
)
from portal_files.fs.paths import normalize_path

__all__ = ["Settings", "load_settings", "resolve_root_path"]


def resolve_root_path(root: str | Path | None = None) -> Path:
    """Resolve and create the sandbox root directory.

    Args:
        root: Optional explicit root; overrides ``PORTAL_FILES_ROOT``.

    Returns:
        Canonical absolute path of the (existing) root directory.
    """

    chosen: str | Path | None = root
    env_root = os.getenv("PORTAL_FILES_ROOT")
    if chosen is None and env_root:
        chosen = env_root
    if chosen is None:
        chosen = Path.home() / ".portal_files" / ROOT_DIRNAME

    resolved = Path(chosen).expanduser()
    resolved.mkdir(parents=True, exist_ok=True)
    return normalize_path(resolved)


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one core instance."""

    root: Path
    chunk_size: int = DEFAULT_CHUNK_SIZE
    search_cap: int = DEFAULT_SEARCH_CAP
    max_rename_attempts: int = DEFAULT_MAX_RENAME_ATTEMPTS


def load_settings(root: str | Path | None = None) -> Settings:
    """Build :class:`Settings` from the environment.

    Raises:
        ValueError: If a numeric variable is not a positive integer.
    """

    return Settings(
        root=resolve_root_path(root),
        chunk_size=_positive_int("PORTAL_FILES_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
        search_cap=_positive_int("PORTAL_FILES_SEARCH_CAP", DEFAULT_SEARCH_CAP),
        max_rename_attempts=_positive_int(
            "PORTAL_FILES_MAX_RENAME_ATTEMPTS", DEFAULT_MAX_RENAME_ATTEMPTS
        ),
    )
