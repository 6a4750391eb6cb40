"""CLI commands for browsing and mutating the sandbox."""

from __future__ import annotations

import importlib
import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from portal_files.cli.common import (
    JsonFlag,
    PolicyOption,
    RootOption,
    fail,
    format_size,
    open_core,
)
from portal_files.core.errors import PortalFilesError
from portal_files.core.schemas import ConflictPolicy, OperationResult, SortKey

app: TyperType = typer.Typer(help="Browse and manage files inside the sandbox.")

PathArgument = Annotated[
    Path,
    typer.Argument(help="Path relative to the sandbox root."),
]
OptionalPathArgument = Annotated[
    Path | None,
    typer.Argument(help="Directory relative to the sandbox root (default: root)."),
]
SortOption = Annotated[
    SortKey,
    typer.Option("--sort", case_sensitive=False, help="Sort by name, date, size or type."),
]
DestOption = Annotated[
    Path | None,
    typer.Option("--dest", help="Destination directory relative to the root."),
]


def _report(result: OperationResult, verb: str) -> None:
    if result.path is None:
        typer.secho(f"Skipped ({result.action.value})", fg=typer.colors.YELLOW)
        return
    typer.secho(f"{verb} {result.path}", fg=typer.colors.GREEN)


def list_files(
    path: OptionalPathArgument = None,
    sort: SortOption = SortKey.NAME,
    json_output: JsonFlag = False,
    root: RootOption = None,
) -> None:
    """List a directory, folders first."""
    core = open_core(root)
    try:
        entries = core.list_directory(path or core.root, sort)
    except PortalFilesError as exc:
        fail(exc)

    if json_output:
        typer.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    for entry in entries:
        marker = "d" if entry.is_directory else "-"
        name = f"{entry.name}/" if entry.is_directory else entry.name
        typer.echo(f"{marker} {format_size(entry.size_bytes):>10}  {name}")


def info(
    path: PathArgument,
    json_output: JsonFlag = False,
    root: RootOption = None,
) -> None:
    """Show detailed metadata for one path."""
    core = open_core(root)
    try:
        details = core.file_info(path)
    except PortalFilesError as exc:
        fail(exc)

    if json_output:
        typer.echo(details.model_dump_json(indent=2))
        return

    typer.echo(f"Name:        {details.name}")
    typer.echo(f"Path:        {details.absolute_path}")
    typer.echo(f"Kind:        {'directory' if details.is_directory else details.category}")
    typer.echo(f"Size:        {format_size(details.size_bytes)}")
    typer.echo(f"Permissions: {details.permissions}")
    if details.modified_at is not None:
        typer.echo(f"Modified:    {details.modified_at.isoformat()}")
    if details.created_at is not None:
        typer.echo(f"Created:     {details.created_at.isoformat()}")


def disk_usage(
    path: OptionalPathArgument = None,
    root: RootOption = None,
) -> None:
    """Show the recursive size of each child, largest first."""
    core = open_core(root)
    try:
        usage = core.disk_usage(path or core.root)
    except PortalFilesError as exc:
        fail(exc)

    for item in usage.items:
        name = f"{item.name}/" if item.is_directory else item.name
        typer.echo(f"{format_size(item.size_bytes):>10}  {name}")
    typer.secho(f"Total: {format_size(usage.total_bytes)}", fg=typer.colors.GREEN)


def make_directory(
    name: Annotated[str, typer.Argument(help="Name of the new directory.")],
    parent: DestOption = None,
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Create a directory."""
    core = open_core(root)
    try:
        result = core.create_directory(
            name, parent or core.root, policy or ConflictPolicy.FAIL
        )
    except PortalFilesError as exc:
        fail(exc)
    _report(result, "Created")


def touch(
    name: Annotated[str, typer.Argument(help="Name of the new file.")],
    content: Annotated[
        str, typer.Option("--content", help="Initial text content.")
    ] = "",
    parent: DestOption = None,
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Create a file, optionally with text content."""
    core = open_core(root)
    try:
        result = core.create_file(
            name, content, parent or core.root, policy or ConflictPolicy.FAIL
        )
    except PortalFilesError as exc:
        fail(exc)
    _report(result, "Created")


def remove(
    path: PathArgument,
    root: RootOption = None,
) -> None:
    """Delete a file or directory tree."""
    core = open_core(root)
    try:
        target = core.locate(path)
        core.delete(target)
    except PortalFilesError as exc:
        fail(exc)
    typer.secho(f"Deleted {target}", fg=typer.colors.GREEN)


def move(
    path: PathArgument,
    destination: Annotated[
        Path, typer.Argument(help="Destination directory relative to the root.")
    ],
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Move a file or directory into another directory."""
    core = open_core(root)
    try:
        result = core.move(path, destination, policy or ConflictPolicy.FAIL)
    except PortalFilesError as exc:
        fail(exc)
    _report(result, "Moved to")


def rename(
    path: PathArgument,
    new_name: Annotated[str, typer.Argument(help="New file name.")],
    root: RootOption = None,
) -> None:
    """Rename in place; fails if the new name is taken."""
    core = open_core(root)
    try:
        result = core.rename(path, new_name)
    except PortalFilesError as exc:
        fail(exc)
    _report(result, "Renamed to")


def copy(
    paths: Annotated[
        list[Path], typer.Argument(help="Paths to copy, relative to the root.")
    ],
    destination: DestOption = None,
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Duplicate files or directories; same-named copies become "name 2.ext"."""
    core = open_core(root)
    try:
        for path in paths:
            result = core.duplicate(path, destination, policy or ConflictPolicy.RENAME)
            _report(result, "Copied to")
    except PortalFilesError as exc:
        fail(exc)


def import_files(
    sources: Annotated[
        list[Path], typer.Argument(help="Files or directories outside the sandbox.")
    ],
    destination: DestOption = None,
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Copy external files or directories into the sandbox."""
    core = open_core(root)
    try:
        for source in sources:
            result = core.import_from(
                source.resolve(), destination or core.root, policy or ConflictPolicy.RENAME
            )
            _report(result, "Imported to")
    except PortalFilesError as exc:
        fail(exc)


def replace_text(
    path: PathArgument,
    find: Annotated[str, typer.Argument(help="Text to find.")],
    replacement: Annotated[str, typer.Argument(help="Replacement text.")],
    ignore_case: Annotated[
        bool, typer.Option("--ignore-case", help="Match case-insensitively.")
    ] = False,
    root: RootOption = None,
) -> None:
    """Replace every occurrence of a string in a text file."""
    core = open_core(root)
    try:
        count = core.replace_in_file(
            path, find, replacement, case_sensitive=not ignore_case
        )
    except (PortalFilesError, ValueError) as exc:
        fail(exc)
    typer.secho(f"{count} replacement(s)", fg=typer.colors.GREEN)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)


app.command("ls")(list_files)
app.command("info")(info)
app.command("du")(disk_usage)
app.command("mkdir")(make_directory)
app.command("touch")(touch)
app.command("rm")(remove)
app.command("mv")(move)
app.command("rename")(rename)
app.command("cp")(copy)
app.command("import")(import_files)
app.command("replace")(replace_text)
