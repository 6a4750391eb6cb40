"""Shared options and helpers for the command-line surface."""

from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")

import structlog

from portal_files.core.file_manager import FileManagerCore
from portal_files.core.schemas import ConflictPolicy

RootOption = Annotated[
    Path | None,
    typer.Option(
        "--root",
        help="Sandbox root (defaults to PORTAL_FILES_ROOT or ~/.portal_files/PortalFiles).",
    ),
]
JsonFlag = Annotated[
    bool,
    typer.Option("--json", help="Emit JSON instead of text."),
]
PolicyOption = Annotated[
    ConflictPolicy | None,
    typer.Option(
        "--policy",
        case_sensitive=False,
        help="Conflict policy: rename, replace, skip or fail.",
    ),
]


def configure_logging(verbose: bool = False) -> None:
    """Send structlog events to stderr so stdout stays machine-readable.

    Only warnings and errors are shown unless ``verbose`` is set.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def open_core(root: Path | None) -> FileManagerCore:
    """Build a core for ``root``, exiting with code 1 on bad configuration."""
    try:
        return FileManagerCore(root=root)
    except (ValueError, OSError) as exc:
        typer.secho(f"Invalid configuration: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


def fail(exc: Exception) -> NoReturn:
    """Print ``exc`` in red on stderr and exit with code 1."""
    typer.secho(f"Error: {exc}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1) from exc


def format_size(size: int | None) -> str:
    if size is None:
        return "-"
    units = ["B", "KiB", "MiB", "GiB"]
    value = float(size)
    unit = units.pop(0)
    while value >= 1024 and units:
        value /= 1024
        unit = units.pop(0)
    return f"{size} B" if unit == "B" else f"{value:.1f} {unit}"
