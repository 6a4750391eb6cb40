"""Archive chain for running zip/unzip jobs with progress output.

This module provides the ArchiveChain class that drives FileManagerCore's
archive operations for interactive callers, binding job context to the
structured logger and rendering progress with Rich.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)

from portal_files.core.errors import ArchiveError
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.progress import CancellationToken
from portal_files.core.schemas import ArchiveJob, ConflictPolicy


@dataclass
class ArchiveOptions:
    """Options for archive jobs.

    Attributes:
        destination_dir: Directory receiving the archive or extracted files
        policy: Conflict policy for the archive name (pack) or entries (unpack)
        password: Optional password; empty means unprotected
        delete_archive: Delete the source archive after a successful unpack
    """

    destination_dir: Path | None = None
    policy: ConflictPolicy = ConflictPolicy.RENAME
    password: str | None = None
    delete_archive: bool = False
    cancel_token: CancellationToken = field(default_factory=CancellationToken)


class ArchiveChain:
    """Runs pack/unpack jobs with structured logging and a progress bar."""

    def __init__(
        self,
        core: FileManagerCore,
        logger: Any = None,
        ui: Console | None = None,
    ) -> None:
        """Initialize archive chain.

        Args:
            core: File manager owning the sandbox
            logger: Optional structlog logger instance
            ui: Optional Rich console for output
        """
        self._core = core
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    def pack(
        self, paths: Sequence[Path], name: str, opts: ArchiveOptions
    ) -> ArchiveJob:
        """Pack ``paths`` into the archive ``name``.

        Raises:
            ArchiveError: If packing fails or is cancelled
        """
        bound_logger = self._logger.bind(
            direction="pack",
            name=name,
            policy=opts.policy.value,
            encrypted=bool(opts.password),
        )

        with self._create_progress() as progress:
            task = progress.add_task(f"Zip: {name}", total=1.0)
            try:
                job = self._core.create_archive(
                    paths,
                    name,
                    opts.destination_dir,
                    lambda fraction: progress.update(task, completed=fraction),
                    password=opts.password,
                    policy=opts.policy,
                    cancel_token=opts.cancel_token,
                )
            except ArchiveError as e:
                bound_logger.error("archive.failed", kind=e.kind, reason=e.reason)
                self._show_failure(e)
                raise

        bound_logger.info(
            "archive.summary",
            job_id=job.job_id,
            target=str(job.target),
            inputs=len(job.inputs),
        )
        self._ui.print(f"✅ [green]CREATED[/green] {job.target.name}")
        return job

    def unpack(self, archive: Path, opts: ArchiveOptions) -> ArchiveJob:
        """Extract ``archive`` and report written and skipped entries.

        Raises:
            ArchiveError: If extraction fails or is cancelled
        """
        bound_logger = self._logger.bind(
            direction="unpack",
            archive=str(archive),
            policy=opts.policy.value,
            delete_archive=opts.delete_archive,
        )

        with self._create_progress() as progress:
            task = progress.add_task(f"Unzip: {archive.name}", total=1.0)
            try:
                job = self._core.extract_archive(
                    archive,
                    opts.destination_dir,
                    opts.policy,
                    lambda fraction: progress.update(task, completed=fraction),
                    password=opts.password,
                    delete_archive=opts.delete_archive,
                    cancel_token=opts.cancel_token,
                )
            except ArchiveError as e:
                bound_logger.error(
                    "archive.failed",
                    kind=e.kind,
                    reason=e.reason,
                    partial=e.partial,
                    written=len(e.written),
                )
                self._show_failure(e)
                raise

        for path in job.written:
            self._ui.print(f"✅ [green]EXTRACTED[/green] {path.name}")
        for path in job.skipped:
            self._ui.print(f"⚠️ [yellow]SKIPPED[/yellow] (exists) {path.name}")

        bound_logger.info(
            "archive.summary",
            job_id=job.job_id,
            written_count=len(job.written),
            skipped_count=len(job.skipped),
        )
        return job

    def _create_progress(self) -> Progress:
        """Create Rich progress display."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=self._ui,
            transient=False,
        )

    def _show_failure(self, error: ArchiveError) -> None:
        if error.kind == ArchiveError.CANCELLED:
            self._ui.print(f"⚠️ [yellow]CANCELLED[/yellow] {error.path.name}")
        else:
            self._ui.print(f"❌ [red]FAILED[/red] {error.path.name} ({error.reason})")
        if error.partial:
            self._ui.print(
                f"[yellow]{len(error.written)} entries were written before the failure[/yellow]"
            )
