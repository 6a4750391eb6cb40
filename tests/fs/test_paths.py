"""Tests for the sandbox path guard and name helpers."""

import os
from pathlib import Path

import pytest

from portal_files.core.errors import InvalidNameError, OutsideRootError
from portal_files.fs.paths import (
    category_for,
    is_within,
    join_name,
    locate_within,
    normalize_path,
    resolve_within,
    split_name,
    validate_name,
)


class TestResolveWithin:
    """Every candidate resolves to root, a descendant, or OutsideRootError."""

    def test_root_itself_is_valid(self, root: Path) -> None:
        assert resolve_within(root, root) == root
        assert resolve_within(root, ".") == root

    def test_relative_candidate_is_anchored_at_root(self, root: Path) -> None:
        assert resolve_within(root, "docs/a.txt") == root / "docs" / "a.txt"

    def test_hypothetical_paths_are_accepted(self, root: Path) -> None:
        result = resolve_within(root, root / "not" / "yet" / "created.txt")
        assert result == root / "not" / "yet" / "created.txt"
        assert not result.exists()

    @pytest.mark.parametrize(
        "candidate",
        ["..", "../sibling", "docs/../../escape", "/", "/etc/passwd"],
    )
    def test_escapes_are_rejected(self, root: Path, candidate: str) -> None:
        with pytest.raises(OutsideRootError) as exc_info:
            resolve_within(root, candidate)
        assert exc_info.value.root == root

    def test_sibling_with_common_prefix_is_rejected(self, root: Path) -> None:
        sibling = root.parent / (root.name + "-old")
        sibling.mkdir()
        with pytest.raises(OutsideRootError):
            resolve_within(root, sibling / "file.txt")

    def test_dot_dot_that_stays_inside_is_allowed(self, root: Path) -> None:
        assert resolve_within(root, "docs/../photos") == root / "photos"

    @pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
    def test_symlink_pointing_outside_is_rejected(
        self, root: Path, tmp_path: Path
    ) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "link").symlink_to(outside)

        with pytest.raises(OutsideRootError):
            resolve_within(root, "link/secret.txt")


@pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
class TestLocateWithin:
    def test_final_symlink_is_not_followed(self, root: Path) -> None:
        (root / "real").mkdir()
        (root / "link").symlink_to(root / "real")

        assert locate_within(root, "link") == root / "link"
        assert resolve_within(root, "link") == root / "real"

    def test_parent_symlink_is_resolved(self, root: Path) -> None:
        (root / "real").mkdir()
        (root / "link").symlink_to(root / "real")

        assert locate_within(root, "link/a.txt") == root / "real" / "a.txt"

    def test_dangling_symlink(self, root: Path) -> None:
        (root / "ghost").symlink_to(root / "missing")
        assert locate_within(root, "ghost") == root / "ghost"

    def test_root_and_relative_markers(self, root: Path) -> None:
        assert locate_within(root, root) == root
        assert locate_within(root, ".") == root
        assert locate_within(root, "docs/..") == root

    @pytest.mark.parametrize("candidate", ["..", "../sibling", "/etc/passwd"])
    def test_escapes_are_rejected(self, root: Path, candidate: str) -> None:
        with pytest.raises(OutsideRootError):
            locate_within(root, candidate)

    def test_link_to_outside_is_rejected(self, root: Path, tmp_path: Path) -> None:
        (root / "escape").symlink_to(tmp_path)
        with pytest.raises(OutsideRootError):
            locate_within(root, "escape")

class TestIsWithin:
    def test_component_wise_comparison(self) -> None:
        root = Path("/sandbox")
        assert is_within(root, Path("/sandbox"))
        assert is_within(root, Path("/sandbox/a/b"))
        assert not is_within(root, Path("/sandbox-old/a"))
        assert not is_within(root, Path("/"))


class TestNormalizePath:
    def test_relative_path_uses_given_root(self, tmp_path: Path) -> None:
        base = normalize_path(tmp_path)
        assert normalize_path("a/./b/../c", base) == base / "a" / "c"

    def test_absolute_path_is_kept(self, tmp_path: Path) -> None:
        base = normalize_path(tmp_path)
        assert normalize_path(base / "x") == base / "x"


class TestNames:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("report.txt", ("report", "txt")),
            ("archive.tar.gz", ("archive.tar", "gz")),
            ("README", ("README", "")),
            (".env", (".env", "")),
            ("trailing.", ("trailing.", "")),
        ],
    )
    def test_split_name(self, name: str, expected: tuple[str, str]) -> None:
        assert split_name(name) == expected
        assert join_name(*split_name(name)) == name

    @pytest.mark.parametrize("name", ["", "   ", ".", "..", "a/b", "nul\x00byte", "x" * 256])
    def test_validate_name_rejects(self, name: str) -> None:
        with pytest.raises(InvalidNameError):
            validate_name(name)

    def test_validate_name_accepts_ordinary_names(self) -> None:
        assert validate_name("File_0001.jpg") == "File_0001.jpg"
        assert validate_name(".hidden") == ".hidden"


class TestCategories:
    def test_directory_category(self) -> None:
        assert category_for("anything.zip", is_directory=True) == "folder"

    def test_extension_lookup_is_case_insensitive(self) -> None:
        assert category_for("Photo.JPG") == "image"
        assert category_for("bundle.ipa") == "app"

    def test_unknown_extension(self) -> None:
        assert category_for("data.bin") == "other"
        assert category_for("Makefile") == "other"
