"""CLI commands for checksums, search, archives and batch renames."""

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

from pydantic import TypeAdapter, ValidationError

from portal_files.chains.archive_chain import ArchiveChain, ArchiveOptions
from portal_files.chains.rename_chain import RenameChain
from portal_files.cli.common import JsonFlag, PolicyOption, RootOption, fail, open_core
from portal_files.core.checksum import ALL_ALGORITHMS
from portal_files.core.errors import PortalFilesError
from portal_files.core.schemas import (
    ConflictPolicy,
    HashAlgorithm,
    RenameSpec,
    SearchCriteria,
)

app: TyperType = typer.Typer(help="Checksums, search, archives and batch renames.")

_RENAME_SPEC: TypeAdapter[RenameSpec] = TypeAdapter(RenameSpec)

PasswordOption = Annotated[
    str | None,
    typer.Option("--password", help="Archive password (empty means unprotected)."),
]
DestOption = Annotated[
    Path | None,
    typer.Option("--dest", help="Destination directory relative to the root."),
]


def checksum(
    path: Annotated[Path, typer.Argument(help="File relative to the sandbox root.")],
    algorithm: Annotated[
        list[HashAlgorithm] | None,
        typer.Option(
            "--algorithm",
            "-a",
            case_sensitive=False,
            help="Algorithm to compute; repeat for several (default: all).",
        ),
    ] = None,
    json_output: JsonFlag = False,
    root: RootOption = None,
) -> None:
    """Compute file digests in a single read pass."""
    core = open_core(root)
    try:
        result = core.compute_checksums(path, algorithm or ALL_ALGORITHMS)
    except PortalFilesError as exc:
        fail(exc)

    ordered = [a for a in HashAlgorithm if a in result.digests]
    if json_output:
        payload = {a.value: result.digests[a] for a in ordered}
        typer.echo(json.dumps(payload, indent=2))
        return
    for algo in ordered:
        typer.echo(f"{algo.value.upper():<7} {result.digests[algo]}")


def search(
    query: Annotated[str, typer.Argument(help="Substring to look for.")],
    base: Annotated[
        Path | None, typer.Option("--base", help="Directory to search (default: root).")
    ] = None,
    content: Annotated[
        bool, typer.Option("--content", help="Also search inside text files.")
    ] = False,
    case_sensitive: Annotated[
        bool, typer.Option("--case-sensitive", help="Match case exactly.")
    ] = False,
    extension: Annotated[
        str | None, typer.Option("--ext", help="Only files with this extension.")
    ] = None,
    min_kb: Annotated[
        int | None, typer.Option("--min-kb", min=0, help="Minimum size in KiB.")
    ] = None,
    max_kb: Annotated[
        int | None, typer.Option("--max-kb", min=0, help="Maximum size in KiB.")
    ] = None,
    cap: Annotated[
        int | None, typer.Option("--cap", min=1, help="Maximum number of results.")
    ] = None,
    root: RootOption = None,
) -> None:
    """Recursively search by name and optionally by content."""
    core = open_core(root)
    try:
        criteria = SearchCriteria(
            query=query,
            case_sensitive=case_sensitive,
            search_content=content,
            extension=extension,
            min_size=min_kb * 1024 if min_kb is not None else None,
            max_size=max_kb * 1024 if max_kb is not None else None,
        )
        results = core.search(criteria, base or core.root, cap)
    except (PortalFilesError, ValidationError) as exc:
        fail(exc)

    for path in results:
        typer.echo(str(path.relative_to(core.root)))
    typer.secho(f"{len(results)} match(es)", fg=typer.colors.GREEN)


def zip_files(
    paths: Annotated[list[Path], typer.Argument(help="Paths to pack.")],
    name: Annotated[str, typer.Option("--name", help="Archive name (.zip appended).")],
    destination: DestOption = None,
    password: PasswordOption = None,
    policy: PolicyOption = None,
    root: RootOption = None,
) -> None:
    """Pack files and directories into a ZIP archive."""
    core = open_core(root)
    chain = ArchiveChain(core)
    opts = ArchiveOptions(
        destination_dir=destination or core.root,
        policy=policy or ConflictPolicy.RENAME,
        password=password,
    )
    try:
        chain.pack(paths, name, opts)
    except PortalFilesError as exc:
        fail(exc)


def unzip(
    archive: Annotated[Path, typer.Argument(help="Archive relative to the root.")],
    destination: DestOption = None,
    password: PasswordOption = None,
    policy: PolicyOption = None,
    delete: Annotated[
        bool,
        typer.Option("--delete", help="Delete the archive after a successful unpack."),
    ] = False,
    root: RootOption = None,
) -> None:
    """Extract a ZIP archive."""
    core = open_core(root)
    chain = ArchiveChain(core)
    opts = ArchiveOptions(
        destination_dir=destination or core.root,
        policy=policy or ConflictPolicy.RENAME,
        password=password,
        delete_archive=delete,
    )
    try:
        chain.unpack(core.guard(archive), opts)
    except (PortalFilesError, ValueError) as exc:
        fail(exc)


def inspect(
    archive: Annotated[Path, typer.Argument(help="Archive relative to the root.")],
    json_output: JsonFlag = False,
    root: RootOption = None,
) -> None:
    """List the entries of a ZIP archive without extracting it."""
    core = open_core(root)
    try:
        entries = core.inspect_archive(archive)
    except PortalFilesError as exc:
        fail(exc)

    if json_output:
        typer.echo(json.dumps([e.model_dump() for e in entries], indent=2))
        return
    for entry in entries:
        lock = "*" if entry.encrypted else " "
        typer.echo(f"{lock} {entry.size_bytes:>10} {entry.compressed_bytes:>10}  {entry.name}")
    typer.secho(f"{len(entries)} entries", fg=typer.colors.GREEN)


def batch_rename(
    files: Annotated[list[Path], typer.Argument(help="Files to rename, in order.")],
    mode: Annotated[
        str,
        typer.Option(
            "--mode", help="find_replace, sequential or prefix_suffix."
        ),
    ],
    find: Annotated[str | None, typer.Option("--find")] = None,
    replace: Annotated[str, typer.Option("--replace")] = "",
    pattern: Annotated[
        str | None, typer.Option("--pattern", help="Sequential pattern containing {n}.")
    ] = None,
    start: Annotated[int, typer.Option("--start", min=0)] = 1,
    prefix: Annotated[str, typer.Option("--prefix")] = "",
    suffix: Annotated[str, typer.Option("--suffix")] = "",
    apply: Annotated[
        bool, typer.Option("--apply", help="Commit the preview instead of only showing it.")
    ] = False,
    root: RootOption = None,
) -> None:
    """Preview, and with --apply commit, a batch rename."""
    core = open_core(root)
    raw: dict[str, Any] = {"mode": mode}
    if mode == "find_replace":
        raw.update(find=find or "", replace=replace)
    elif mode == "sequential":
        raw.update(pattern=pattern or "", start_number=start)
    else:
        raw.update(prefix=prefix, suffix=suffix)

    chain = RenameChain(core)
    try:
        spec = _RENAME_SPEC.validate_python(raw)
        plan = chain.preview([core.locate(f) for f in files], spec)
        if apply:
            chain.apply(plan)
    except (PortalFilesError, ValidationError) as exc:
        fail(exc)


def run_cli(args: Sequence[str] | None = None) -> None:
    app(args=args)


app.command("checksum")(checksum)
app.command("search")(search)
app.command("zip")(zip_files)
app.command("unzip")(unzip)
app.command("inspect")(inspect)
app.command("batch-rename")(batch_rename)
