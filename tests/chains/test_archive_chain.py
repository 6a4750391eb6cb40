"""Tests for archive chain orchestration."""

from io import StringIO
from pathlib import Path
from unittest.mock import Mock

import pytest
from rich.console import Console

from portal_files.chains.archive_chain import ArchiveChain, ArchiveOptions
from portal_files.core.errors import ArchiveError
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.schemas import ConflictPolicy


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=400, force_terminal=False), buffer


class TestArchiveChain:
    def test_pack_and_unpack(self, core: FileManagerCore, populated: Path) -> None:
        ui, buffer = _console()
        logger = Mock()
        logger.bind.return_value = logger
        chain = ArchiveChain(core, logger=logger, ui=ui)

        job = chain.pack([populated / "docs"], "docs", ArchiveOptions())
        assert job.target == populated / "docs.zip"

        (populated / "out").mkdir()
        result = chain.unpack(
            job.target,
            ArchiveOptions(destination_dir=populated / "out", policy=ConflictPolicy.REPLACE),
        )

        output = buffer.getvalue()
        assert "CREATED" in output
        assert "EXTRACTED" in output
        assert len(result.written) == 3
        bound = [c.kwargs for c in logger.bind.call_args_list]
        assert bound[0]["direction"] == "pack"
        assert bound[1]["policy"] == "replace"
        summary = [c for c in logger.info.call_args_list if c.args[0] == "archive.summary"]
        assert len(summary) == 2

    def test_skipped_entries_are_reported(
        self, core: FileManagerCore, populated: Path
    ) -> None:
        ui, buffer = _console()
        chain = ArchiveChain(core, ui=ui)
        job = chain.pack([populated / "photo.png"], "one", ArchiveOptions())

        chain.unpack(job.target, ArchiveOptions(policy=ConflictPolicy.SKIP))

        assert "SKIPPED" in buffer.getvalue()

    def test_failure_is_reported_and_reraised(
        self, core: FileManagerCore, populated: Path
    ) -> None:
        ui, buffer = _console()
        chain = ArchiveChain(core, ui=ui)
        bad = populated / "bad.zip"
        bad.write_bytes(b"nope")

        with pytest.raises(ArchiveError):
            chain.unpack(bad, ArchiveOptions())

        assert "FAILED" in buffer.getvalue()

    def test_cancelled_pack(self, core: FileManagerCore, populated: Path) -> None:
        ui, buffer = _console()
        chain = ArchiveChain(core, ui=ui)
        opts = ArchiveOptions()
        opts.cancel_token.cancel()

        with pytest.raises(ArchiveError) as exc_info:
            chain.pack([populated / "docs"], "docs", opts)

        assert exc_info.value.kind == ArchiveError.CANCELLED
        assert "CANCELLED" in buffer.getvalue()
        assert not (populated / "docs.zip").exists()
