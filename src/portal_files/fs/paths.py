"""Path utilities and the sandbox guard.

This module provides path normalization, the root containment check used by
every path-producing operation, and file-name helpers shared by the conflict
resolver and the batch renamer.
"""

import os
import unicodedata
from pathlib import Path

from portal_files.core.constants import (
    DEFAULT_CATEGORY,
    DIRECTORY_CATEGORY,
    EXTENSION_CATEGORIES,
)
from portal_files.core.errors import InvalidNameError, OutsideRootError

#: Longest file name most filesystems accept, in encoded bytes
MAX_NAME_BYTES = 255


def normalize_path(path: Path | str, root: Path | None = None) -> Path:
    """Normalize a path for consistent handling.

    Relative paths are anchored at ``root`` when given. Symlinks in existing
    parts of the path are resolved; missing trailing parts are normalized
    lexically, so hypothetical paths are accepted.

    Args:
        path: Path to normalize
        root: Optional root directory for relative paths

    Returns:
        Normalized absolute path
    """
    if not isinstance(path, Path):
        path = Path(path)

    if not path.is_absolute():
        base = root if root is not None else Path.cwd()
        path = base / path

    path = path.resolve(strict=False)

    # Normalize Unicode (NFC on macOS, NFD handling)
    if os.name == "posix":
        path = Path(unicodedata.normalize("NFC", str(path)))

    return path


def is_within(root: Path, path: Path) -> bool:
    """Return True if ``path`` equals ``root`` or lies below it.

    Both arguments must already be normalized. The comparison is component
    wise, so ``/sandbox-old`` is not inside ``/sandbox``.
    """
    return path == root or path.is_relative_to(root)


def resolve_within(root: Path, candidate: Path | str) -> Path:
    """Resolve ``candidate`` and ensure it stays inside ``root``.

    Relative candidates are interpreted against ``root``. The function has
    no side effects and may be called on paths that do not exist yet.

    Args:
        root: Canonical sandbox root
        candidate: Absolute or root-relative path

    Returns:
        The canonical path, which is ``root`` or a descendant of it

    Raises:
        OutsideRootError: If the canonical form escapes ``root``
    """
    resolved = normalize_path(candidate, root=root)
    if not is_within(root, resolved):
        raise OutsideRootError(root, candidate)
    return resolved


def locate_within(root: Path, candidate: Path | str) -> Path:
    """Like :func:`resolve_within`, but the final component is not resolved.

    Mutations address a directory entry, not what it points to: a symlink
    names the link itself, and a dangling link can still be located. The
    parent is canonicalized and must be inside ``root``; the fully resolved
    path must be inside ``root`` as well.

    Raises:
        OutsideRootError: If the parent or the resolved target escapes ``root``
    """
    resolved = resolve_within(root, candidate)
    path = Path(candidate)
    if not path.is_absolute():
        path = root / path
    if path.name in ("", ".", ".."):
        return resolved

    parent = normalize_path(path.parent)
    if not is_within(root, parent):
        if resolved == root:
            return root
        raise OutsideRootError(root, candidate)

    name = path.name
    if os.name == "posix":
        name = unicodedata.normalize("NFC", name)
    return parent / name


def split_name(name: str) -> tuple[str, str]:
    """Split a file name into stem and extension (without the dot).

    Dotfiles such as ``.env`` are all stem. A trailing dot is not an
    extension.
    """
    stem, ext = os.path.splitext(name)
    if ext == ".":
        return name, ""
    return stem, ext[1:]


def join_name(stem: str, ext: str) -> str:
    """Inverse of :func:`split_name`."""
    return f"{stem}.{ext}" if ext else stem


def validate_name(name: str) -> str:
    """Validate that ``name`` is a single usable path component.

    Raises:
        InvalidNameError: If the name is empty, a relative marker, contains a
            separator or NUL, or is too long
    """
    if not name or not name.strip():
        raise InvalidNameError(name, "name is empty")
    if name in (".", ".."):
        raise InvalidNameError(name, "name is a relative path marker")
    if "/" in name or os.sep in name or (os.altsep and os.altsep in name):
        raise InvalidNameError(name, "name contains a path separator")
    if "\x00" in name:
        raise InvalidNameError(name, "name contains a NUL character")
    if len(name.encode("utf-8")) > MAX_NAME_BYTES:
        raise InvalidNameError(name, f"name exceeds {MAX_NAME_BYTES} bytes")
    return name


def category_for(name: str, is_directory: bool = False) -> str:
    """Map a file name to its extension category tag."""
    if is_directory:
        return DIRECTORY_CATEGORY
    _, ext = split_name(name)
    return EXTENSION_CATEGORIES.get(ext.lower(), DEFAULT_CATEGORY)

