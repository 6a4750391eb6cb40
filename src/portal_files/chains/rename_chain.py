"""Rename chain for previewing and committing batch renames.

The chain prints the preview, optionally commits it through the batch
renamer, and reports per-file results, including which files were and were
not renamed when a commit stops partway.
"""

import uuid
from collections.abc import Sequence
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
from rich.table import Table

from portal_files.core import batch_rename
from portal_files.core.errors import BatchRenameConflictError, PartialRenameError
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.schemas import RenamePlan, RenameSpec


class RenameChain:
    """Orchestrates batch renames with structured logging and Rich output."""

    def __init__(
        self,
        core: FileManagerCore,
        logger: Any = None,
        ui: Console | None = None,
    ) -> None:
        self._core = core
        self._logger = logger or structlog.get_logger()
        self._ui = ui or Console()

    def preview(self, files: Sequence[Path], spec: RenameSpec) -> RenamePlan:
        """Compute and print the proposed names."""
        plan = batch_rename.plan(files, spec)
        table = Table(title=f"Batch rename ({spec.mode})")
        table.add_column("#", justify="right")
        table.add_column("Current")
        table.add_column("New")
        for index, (file, name) in enumerate(zip(plan.files, plan.names, strict=True)):
            style = "dim" if file.name == name else ""
            table.add_row(str(index + 1), file.name, name, style=style)
        self._ui.print(table)
        return plan

    def apply(self, plan: RenamePlan) -> list[Path]:
        """Commit ``plan`` and print the outcome of every file.

        Raises:
            BatchRenameConflictError: If destinations collide; nothing renamed
            PartialRenameError: If the commit stopped partway
        """
        bound_logger = self._logger.bind(
            batch_id=uuid.uuid4().hex[:12],
            total_items=len(plan.files),
        )

        with self._create_progress() as progress:
            task = progress.add_task("Rename", total=1.0)
            try:
                results = batch_rename.commit(
                    self._core,
                    plan.files,
                    plan.names,
                    lambda fraction: progress.update(task, completed=fraction),
                )
            except BatchRenameConflictError as e:
                bound_logger.warning("rename.conflict", collisions=len(e.collisions))
                for name, reason in sorted(e.collisions.items()):
                    self._ui.print(f"❌ [red]CONFLICT[/red] {name} ({reason})")
                raise
            except PartialRenameError as e:
                bound_logger.error(
                    "rename.partial",
                    applied_count=e.applied_count,
                    failed_at=e.failed_at,
                    reason=e.reason,
                )
                self._show_partial(plan, e)
                raise

        for source, target in zip(plan.files, results, strict=True):
            self._show_item_result(source, target)

        renamed = [t for s, t in zip(plan.files, results, strict=True) if s.name != t.name]
        bound_logger.info("rename.summary", renamed_count=len(renamed))
        return results

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

    def _show_item_result(self, source: Path, target: Path) -> None:
        if source.name == target.name:
            self._ui.print(f"🔍 [blue]NOOP[/blue] {source.name}")
        else:
            self._ui.print(f"✅ [green]RENAMED[/green] {source.name} → {target.name}")

    def _show_partial(self, plan: RenamePlan, error: PartialRenameError) -> None:
        for old, new in error.applied:
            self._ui.print(f"✅ [green]RENAMED[/green] {old.name} → {new.name}")
        failed = plan.files[error.failed_at]
        self._ui.print(
            f"❌ [red]FAILED[/red] {failed.name} → {plan.names[error.failed_at]} "
            f"({error.reason})"
        )
        for file in plan.files[error.failed_at + 1 :]:
            self._ui.print(f"⚠️ [yellow]NOT RENAMED[/yellow] {file.name}")
