"""CLI tests for the files command group."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from click.testing import Result
from typer.testing import CliRunner

from portal_files.cli import app

runner = CliRunner()


def _invoke(root: Path, *args: str) -> Result:
    return runner.invoke(app, ["files", *args, "--root", str(root)])


def test_ls_lists_folders_first(populated: Path) -> None:
    result = _invoke(populated, "ls")

    assert result.exit_code == 0
    lines = result.stdout.splitlines()
    assert lines[0].endswith("docs/")
    assert lines[1].endswith("empty.txt")


def test_ls_json(populated: Path) -> None:
    result = _invoke(populated, "ls", "docs", "--json")

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [item["name"] for item in payload] == ["nested", "notes.md", "report.txt"]
    assert payload[0]["category"] == "folder"
    assert payload[2]["category"] == "text"


def test_ls_outside_root_fails(populated: Path) -> None:
    result = _invoke(populated, "ls", "../..")

    assert result.exit_code == 1
    assert "Error" in result.output


def test_info_and_du(populated: Path) -> None:
    info = _invoke(populated, "info", "docs/report.txt", "--json")
    assert info.exit_code == 0
    assert json.loads(info.stdout)["size_bytes"] == 17

    usage = _invoke(populated, "du")
    assert usage.exit_code == 0
    assert "Total: 61 B" in usage.stdout


def test_mkdir_conflict_fails_by_default(populated: Path) -> None:
    result = _invoke(populated, "mkdir", "docs")

    assert result.exit_code == 1
    assert "Error" in result.output

    renamed = _invoke(populated, "mkdir", "docs", "--policy", "rename")
    assert renamed.exit_code == 0
    assert (populated / "docs 2").is_dir()


def test_touch_and_replace(root: Path) -> None:
    created = _invoke(root, "touch", "hello.txt", "--content", "Hello hello")
    assert created.exit_code == 0
    assert "Created" in created.stdout

    replaced = _invoke(root, "replace", "hello.txt", "hello", "bye", "--ignore-case")
    assert replaced.exit_code == 0
    assert "2 replacement(s)" in replaced.stdout
    assert (root / "hello.txt").read_text() == "bye bye"


def test_copy_move_rename_remove(populated: Path) -> None:
    copied = _invoke(populated, "cp", "empty.txt")
    assert copied.exit_code == 0
    assert (populated / "empty 2.txt").exists()

    moved = _invoke(populated, "mv", "empty 2.txt", "docs")
    assert moved.exit_code == 0
    assert (populated / "docs" / "empty 2.txt").exists()

    renamed = _invoke(populated, "rename", "docs/empty 2.txt", "blank.txt")
    assert renamed.exit_code == 0
    assert (populated / "docs" / "blank.txt").exists()

    removed = _invoke(populated, "rm", "docs/blank.txt")
    assert removed.exit_code == 0
    assert not (populated / "docs" / "blank.txt").exists()


def test_rename_onto_existing_fails(populated: Path) -> None:
    result = _invoke(populated, "rename", "docs/report.txt", "notes.md")

    assert result.exit_code == 1
    assert (populated / "docs" / "report.txt").exists()


def test_import_from_outside(root: Path, tmp_path: Path) -> None:
    external = tmp_path / "incoming.txt"
    external.write_text("from outside")

    result = _invoke(root, "import", str(external))

    assert result.exit_code == 0
    assert (root / "incoming.txt").read_text() == "from outside"
    assert external.exists()


def test_invalid_root_reports_configuration_error(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "file"
    not_a_dir.write_text("x")

    result = runner.invoke(app, ["files", "ls", "--root", str(not_a_dir)])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


@pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
def test_rm_symlink_keeps_target(populated: Path) -> None:
    (populated / "link").symlink_to(populated / "docs")

    result = _invoke(populated, "rm", "link")

    assert result.exit_code == 0
    assert not (populated / "link").is_symlink()
    assert (populated / "docs" / "notes.md").exists()
