"""Tests for destination conflict resolution."""

from collections.abc import Callable
from pathlib import Path

import pytest

from portal_files.core.errors import ConflictError, ConflictUnresolvedError
from portal_files.core.schemas import ConflictAction, ConflictPolicy
from portal_files.fs.conflicts import (
    candidate_names,
    require_destination,
    resolve_conflict,
)


def _exists_in(paths: set[Path]) -> Callable[[Path], bool]:
    return lambda p: p in paths


class TestCandidateNames:
    def test_keeps_extension(self) -> None:
        names = candidate_names("report.txt")
        assert [next(names) for _ in range(3)] == [
            "report 2.txt",
            "report 3.txt",
            "report 4.txt",
        ]

    def test_no_extension(self) -> None:
        assert next(candidate_names("Makefile")) == "Makefile 2"

    def test_dotfile_is_all_stem(self) -> None:
        assert next(candidate_names(".env")) == ".env 2"


class TestResolveConflict:
    def test_free_destination_proceeds(self) -> None:
        desired = Path("/sandbox/report.txt")
        decision = resolve_conflict(desired, _exists_in(set()))

        assert decision.action is ConflictAction.PROCEED
        assert decision.path == desired

    def test_auto_rename_picks_first_free_suffix(self) -> None:
        desired = Path("/sandbox/report.txt")
        taken = {desired, Path("/sandbox/report 2.txt")}

        decision = resolve_conflict(desired, _exists_in(taken), ConflictPolicy.RENAME)

        assert decision.action is ConflictAction.RENAME
        assert decision.path == Path("/sandbox/report 3.txt")
        assert decision.desired == desired

    def test_sequential_calls_produce_distinct_paths(self) -> None:
        desired = Path("/sandbox/report.txt")
        taken = {desired}
        produced = []
        for _ in range(5):
            decision = resolve_conflict(desired, _exists_in(taken))
            assert decision.path is not None
            assert decision.path not in taken
            taken.add(decision.path)
            produced.append(decision.path.name)

        assert produced == [f"report {n}.txt" for n in range(2, 7)]

    def test_fail_policy_returns_conflict(self) -> None:
        desired = Path("/sandbox/a.txt")
        decision = resolve_conflict(desired, _exists_in({desired}), ConflictPolicy.FAIL)

        assert decision.action is ConflictAction.CONFLICT
        with pytest.raises(ConflictError):
            require_destination(decision)

    def test_replace_policy(self) -> None:
        desired = Path("/sandbox/a.txt")
        decision = resolve_conflict(
            desired, _exists_in({desired}), ConflictPolicy.REPLACE
        )
        assert decision.action is ConflictAction.REPLACE
        assert require_destination(decision) == desired

    def test_skip_policy_has_no_path(self) -> None:
        desired = Path("/sandbox/a.txt")
        decision = resolve_conflict(desired, _exists_in({desired}), ConflictPolicy.SKIP)

        assert decision.action is ConflictAction.SKIP
        assert decision.path is None
        with pytest.raises(ValueError):
            require_destination(decision)

    def test_attempt_budget_is_enforced(self) -> None:
        with pytest.raises(ConflictUnresolvedError) as exc_info:
            resolve_conflict(Path("/sandbox/a.txt"), lambda _p: True, max_attempts=25)
        assert exc_info.value.attempts == 25

    def test_default_predicate_uses_filesystem(self, tmp_path: Path) -> None:
        (tmp_path / "x.bin").write_bytes(b"1")
        decision = resolve_conflict(tmp_path / "x.bin")
        assert decision.path == tmp_path / "x 2.bin"
