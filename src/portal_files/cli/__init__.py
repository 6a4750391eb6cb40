"""CLI entrypoints for Portal Files."""

from __future__ import annotations

import importlib
from collections.abc import Sequence
from typing import TYPE_CHECKING, Annotated, Any

if TYPE_CHECKING:  # pragma: no cover - typing only
    import typer
    from typer import Typer as TyperType
else:  # pragma: no cover - runtime fallback for typing
    typer = importlib.import_module("typer")
    TyperType = Any

from portal_files.cli.common import configure_logging
from portal_files.cli.files import app as files_app
from portal_files.cli.tools import app as tools_app

app: TyperType = typer.Typer(help="Sandboxed file manager.", no_args_is_help=True)
app.add_typer(files_app, name="files")
app.add_typer(tools_app, name="tools")


@app.callback()
def _root(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug events to stderr.")
    ] = False,
) -> None:
    configure_logging(verbose)


def main(args: Sequence[str] | None = None) -> None:
    app(args=args)


__all__ = ["app", "files_app", "main", "tools_app"]
