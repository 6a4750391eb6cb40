"""Tests for batch rename previews and commits."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from portal_files.core.batch_rename import commit, find_collisions, plan, preview, validate_spec
from portal_files.core.errors import (
    BatchRenameConflictError,
    FileOperationError,
    InvalidRenameSpecError,
    PartialRenameError,
)
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.schemas import (
    FindReplaceSpec,
    OperationResult,
    PrefixSuffixSpec,
    SequentialSpec,
)


@pytest.fixture
def photos(root: Path) -> list[Path]:
    files = []
    for name in ("IMG_a.jpg", "IMG_b.jpg", "IMG_c.jpg"):
        path = root / name
        path.write_text(name)
        files.append(path)
    return files


class TestValidateSpec:
    def test_sequential_needs_placeholder(self) -> None:
        with pytest.raises(InvalidRenameSpecError):
            validate_spec(SequentialSpec(pattern="File_"))

    def test_find_text_required(self) -> None:
        with pytest.raises(InvalidRenameSpecError):
            validate_spec(FindReplaceSpec(find="", replace="x"))

    def test_prefix_or_suffix_required(self) -> None:
        with pytest.raises(InvalidRenameSpecError):
            validate_spec(PrefixSuffixSpec())

    def test_valid_specs(self) -> None:
        validate_spec(SequentialSpec(pattern="File_{n}"))
        validate_spec(FindReplaceSpec(find="a"))
        validate_spec(PrefixSuffixSpec(suffix="_v2"))


class TestPreview:
    def test_sequential_preserves_extensions(self) -> None:
        files = [Path("a.jpg"), Path("b.jpg"), Path("c.jpg")]
        assert preview(files, SequentialSpec(pattern="File_{n}", start_number=1)) == [
            "File_0001.jpg",
            "File_0002.jpg",
            "File_0003.jpg",
        ]

    def test_sequential_keeps_each_original_extension(self) -> None:
        names = preview(["x.png", "y.JPG", "z"], SequentialSpec(pattern="{n}-pic", start_number=9))
        assert names == ["0009-pic.png", "0010-pic.JPG", "0011-pic"]

    def test_find_replace_all_occurrences_in_stem_only(self) -> None:
        names = preview(["aa_a.aaa"], FindReplaceSpec(find="a", replace="b"))
        assert names == ["bb_b.aaa"]

    def test_find_replace_with_empty_replacement(self) -> None:
        assert preview(["IMG_001.png"], FindReplaceSpec(find="IMG_")) == ["001.png"]

    def test_prefix_suffix(self) -> None:
        names = preview(["song.mp3", ".env"], PrefixSuffixSpec(prefix="old_", suffix="!"))
        assert names == ["old_song!.mp3", "old_.env!"]

    def test_reordering_input_reorders_preview(self) -> None:
        files = ["one.txt", "two.txt", "three.txt"]
        spec = PrefixSuffixSpec(prefix="x-")
        assert preview(files[::-1], spec) == preview(files, spec)[::-1]

    def test_invalid_spec_is_rejected(self) -> None:
        with pytest.raises(InvalidRenameSpecError):
            preview(["a.txt"], SequentialSpec(pattern="no placeholder"))

    def test_plan_pairs_files_and_names(self) -> None:
        result = plan(["a.txt"], PrefixSuffixSpec(prefix="p"))
        assert result.files == [Path("a.txt")]
        assert result.names == ["pa.txt"]


class TestFindCollisions:
    def test_collision_within_batch(self, root: Path) -> None:
        a, b = root / "a.txt", root / "b.txt"
        collisions = find_collisions([a, b], ["same.txt", "same.txt"])
        assert list(collisions) == ["same.txt"]

    def test_collision_with_existing_file(self, root: Path) -> None:
        (root / "taken.txt").write_text("x")
        collisions = find_collisions([root / "a.txt"], ["taken.txt"])
        assert collisions == {"taken.txt": "destination already exists"}

    def test_unchanged_name_is_not_a_collision(self, root: Path) -> None:
        (root / "a.txt").write_text("x")
        assert find_collisions([root / "a.txt"], ["a.txt"]) == {}

    @pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
    def test_link_target_is_a_collision(self, root: Path) -> None:
        (root / "a.txt").write_text("x")
        (root / "alias.txt").symlink_to(root / "a.txt")

        collisions = find_collisions([root / "alias.txt"], ["a.txt"])

        assert collisions == {"a.txt": "destination already exists"}


class TestCommit:
    def test_commit_matches_preview(
        self, core: FileManagerCore, photos: list[Path], root: Path
    ) -> None:
        names = preview(photos, SequentialSpec(pattern="File_{n}"))
        seen: list[float] = []

        results = commit(core, photos, names, seen.append)

        assert [p.name for p in results] == names
        assert sorted(p.name for p in root.iterdir()) == names
        assert (root / "File_0002.jpg").read_text() == "IMG_b.jpg"
        assert seen[-1] == 1.0
        assert seen == sorted(seen)

    def test_conflict_detected_before_any_rename(
        self, core: FileManagerCore, photos: list[Path], root: Path
    ) -> None:
        (root / "File_0003.jpg").write_text("existing")
        names = preview(photos, SequentialSpec(pattern="File_{n}"))

        with pytest.raises(BatchRenameConflictError) as exc_info:
            commit(core, photos, names)

        assert list(exc_info.value.collisions) == ["File_0003.jpg"]
        assert all(p.exists() for p in photos)

    def test_collision_between_batch_entries(
        self, core: FileManagerCore, photos: list[Path]
    ) -> None:
        names = preview(photos, FindReplaceSpec(find="IMG_", replace=""))
        names[1] = names[0]

        with pytest.raises(BatchRenameConflictError):
            commit(core, photos, names)
        assert all(p.exists() for p in photos)

    def test_invalid_generated_name(self, core: FileManagerCore, photos: list[Path]) -> None:
        with pytest.raises(InvalidRenameSpecError):
            commit(core, photos[:1], ["bad/name.jpg"])

    def test_length_mismatch(self, core: FileManagerCore, photos: list[Path]) -> None:
        with pytest.raises(InvalidRenameSpecError):
            commit(core, photos, ["one.jpg"])

    def test_duplicate_file_entries(self, core: FileManagerCore, photos: list[Path]) -> None:
        with pytest.raises(InvalidRenameSpecError):
            commit(core, [photos[0], photos[0]], ["x.jpg", "y.jpg"])

    def test_missing_source_fails_up_front(
        self, core: FileManagerCore, photos: list[Path], root: Path
    ) -> None:
        with pytest.raises(FileOperationError):
            commit(core, [photos[0], root / "ghost.jpg"], ["x.jpg", "y.jpg"])
        assert photos[0].exists()

    def test_partial_failure_reports_progress_made(
        self, core: FileManagerCore, photos: list[Path], root: Path
    ) -> None:
        names = preview(photos, PrefixSuffixSpec(prefix="new_"))
        real_rename = core.rename
        calls = {"count": 0}

        def flaky_rename(path: Path, new_name: str) -> OperationResult:
            calls["count"] += 1
            if calls["count"] == 2:
                raise FileOperationError("rename", path, "Permission denied")
            return real_rename(path, new_name)

        with patch.object(core, "rename", side_effect=flaky_rename):
            with pytest.raises(PartialRenameError) as exc_info:
                commit(core, photos, names)

        error = exc_info.value
        assert error.applied_count == 1
        assert error.failed_at == 1
        assert error.applied == [(photos[0], root / "new_IMG_a.jpg")]
        assert "Permission denied" in error.reason
        # not rolled back
        assert (root / "new_IMG_a.jpg").exists()
        assert photos[1].exists()
        assert photos[2].exists()


@pytest.mark.skipif(os.name != "posix", reason="symlinks need posix")
def test_commit_renames_links_not_targets(core: FileManagerCore, root: Path) -> None:
    (root / "target.txt").write_text("data")
    (root / "alias.txt").symlink_to(root / "target.txt")

    results = commit(core, [root / "alias.txt"], ["renamed.txt"])

    assert results == [root / "renamed.txt"]
    assert (root / "renamed.txt").is_symlink()
    assert (root / "target.txt").read_text() == "data"
