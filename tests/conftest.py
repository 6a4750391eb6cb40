"""Pytest configuration and fixtures for Portal Files tests."""

from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from portal_files.core.file_manager import FileManagerCore
from portal_files.fs.paths import normalize_path


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the developer's PORTAL_FILES_* settings out of the tests.

    The CLI points structlog at the runner's stderr, so defaults are
    restored afterwards.
    """
    for name in (
        "PORTAL_FILES_ROOT",
        "PORTAL_FILES_CHUNK_SIZE",
        "PORTAL_FILES_SEARCH_CAP",
        "PORTAL_FILES_MAX_RENAME_ATTEMPTS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    structlog.reset_defaults()


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """A canonical, existing sandbox root."""
    sandbox = tmp_path / "PortalFiles"
    sandbox.mkdir()
    return normalize_path(sandbox)


@pytest.fixture
def core(root: Path) -> FileManagerCore:
    return FileManagerCore(root=root)


@pytest.fixture
def populated(root: Path) -> Path:
    """Root with a small tree:

    docs/report.txt, docs/notes.md, docs/nested/deep.txt, photo.png, empty.txt
    """
    docs = root / "docs"
    (docs / "nested").mkdir(parents=True)
    (docs / "report.txt").write_text("quarterly report\n")
    (docs / "notes.md").write_text("TODO: write notes\n")
    (docs / "nested" / "deep.txt").write_text("deep content")
    (root / "photo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00TODO")
    (root / "empty.txt").write_bytes(b"")
    return root
