"""Recursive file search by name, content, extension and size.

Directories are traversed but never matched. Content search decodes files
as UTF-8; binary or undecodable files simply do not match.
"""

import os
from collections.abc import Iterator
from pathlib import Path

import structlog

from portal_files.core.constants import DEFAULT_SEARCH_CAP
from portal_files.core.errors import FileOperationError, SearchCancelledError
from portal_files.core.progress import CancellationToken
from portal_files.core.schemas import SearchCriteria
from portal_files.fs.paths import split_name

logger = structlog.get_logger(__name__)


def _contains(haystack: str, needle: str, case_sensitive: bool) -> bool:
    if case_sensitive:
        return needle in haystack
    return needle.casefold() in haystack.casefold()


def _read_text(path: Path) -> str | None:
    """Return the file's text, or None for binary/unreadable content."""
    try:
        data = path.read_bytes()
    except OSError:
        return None
    if b"\x00" in data:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def matches(path: Path, size: int, criteria: SearchCriteria) -> bool:
    """Apply the search predicates to one regular file."""
    if criteria.extension is not None:
        _, ext = split_name(path.name)
        if ext.lower() != criteria.extension:
            return False

    if criteria.min_size is not None and size < criteria.min_size:
        return False
    if criteria.max_size is not None and size > criteria.max_size:
        return False

    if _contains(path.name, criteria.query, criteria.case_sensitive):
        return True

    if criteria.search_content:
        text = _read_text(path)
        if text is not None:
            return _contains(text, criteria.query, criteria.case_sensitive)

    return False


def iter_matches(
    base: Path,
    criteria: SearchCriteria,
    *,
    cancel_token: CancellationToken | None = None,
) -> Iterator[Path]:
    """Lazily yield matching files below ``base`` in a stable walk order.

    Symlinked directories are not followed. Each call starts a fresh walk.

    Raises:
        SearchCancelledError: If ``cancel_token`` is cancelled mid-walk
    """
    for dirpath, dirnames, filenames in os.walk(base, followlinks=False):
        dirnames.sort()
        directory = Path(dirpath)
        for filename in sorted(filenames):
            if cancel_token is not None and cancel_token.cancelled:
                raise SearchCancelledError(base)

            path = directory / filename
            try:
                st = path.stat()
            except OSError:
                continue
            if not path.is_file():
                continue

            if matches(path, st.st_size, criteria):
                yield path


def search(
    base: Path,
    criteria: SearchCriteria,
    result_cap: int = DEFAULT_SEARCH_CAP,
    *,
    cancel_token: CancellationToken | None = None,
) -> list[Path]:
    """Collect at most ``result_cap`` matches below ``base``.

    Args:
        base: Directory to search recursively
        criteria: Search predicates
        result_cap: Hard cap on the number of results
        cancel_token: Optional cancellation signal

    Returns:
        Matching file paths, in walk order

    Raises:
        FileOperationError: If ``base`` is not a readable directory
        SearchCancelledError: If cancelled before completion
    """
    if result_cap <= 0:
        raise ValueError("result_cap must be positive")
    if not base.is_dir():
        raise FileOperationError("search", base, "not a directory")

    results: list[Path] = []
    for path in iter_matches(base, criteria, cancel_token=cancel_token):
        results.append(path)
        if len(results) >= result_cap:
            break

    logger.info(
        "search.done",
        base=str(base),
        query=criteria.query,
        content=criteria.search_content,
        results=len(results),
        capped=len(results) >= result_cap,
    )
    return results
