"""Tests for rename chain orchestration."""

from io import StringIO
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from portal_files.chains.rename_chain import RenameChain
from portal_files.core.errors import (
    BatchRenameConflictError,
    FileOperationError,
    PartialRenameError,
)
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.schemas import OperationResult, PrefixSuffixSpec, SequentialSpec


@pytest.fixture
def files(root: Path) -> list[Path]:
    paths = [root / "one.txt", root / "two.txt"]
    for path in paths:
        path.write_text(path.stem)
    return paths


def _chain(core: FileManagerCore) -> tuple[RenameChain, StringIO]:
    buffer = StringIO()
    return RenameChain(core, ui=Console(file=buffer, width=400)), buffer


class TestRenameChain:
    def test_preview_then_apply(
        self, core: FileManagerCore, files: list[Path], root: Path
    ) -> None:
        chain, buffer = _chain(core)

        plan = chain.preview(files, SequentialSpec(pattern="Doc_{n}"))
        assert plan.names == ["Doc_0001.txt", "Doc_0002.txt"]
        assert "Doc_0001.txt" in buffer.getvalue()
        assert (root / "one.txt").exists()

        results = chain.apply(plan)

        assert [p.name for p in results] == plan.names
        assert "RENAMED" in buffer.getvalue()

    def test_conflict_is_reported(
        self, core: FileManagerCore, files: list[Path], root: Path
    ) -> None:
        (root / "x_one.txt").write_text("taken")
        chain, buffer = _chain(core)
        plan = chain.preview(files, PrefixSuffixSpec(prefix="x_"))

        with pytest.raises(BatchRenameConflictError):
            chain.apply(plan)

        assert "CONFLICT" in buffer.getvalue()
        assert all(p.exists() for p in files)

    def test_partial_failure_lists_remaining_files(
        self, core: FileManagerCore, files: list[Path]
    ) -> None:
        chain, buffer = _chain(core)
        plan = chain.preview(files, PrefixSuffixSpec(suffix="_v2"))
        real_rename = core.rename

        def fail_second(path: Path, new_name: str) -> OperationResult:
            if new_name == "two_v2.txt":
                raise FileOperationError("rename", path, "Read-only file system")
            return real_rename(path, new_name)

        with patch.object(core, "rename", side_effect=fail_second):
            with pytest.raises(PartialRenameError):
                chain.apply(plan)

        output = buffer.getvalue()
        assert "RENAMED" in output
        assert "FAILED" in output
        assert "Read-only file system" in output
