"""Destination conflict resolution.

Given a desired destination and an existence predicate, produce either a
collision-free path or an explicit decision (replace, skip, conflict).
Auto-rename appends " 2", " 3", ... to the stem, keeping the extension.
"""

from collections.abc import Callable, Iterator
from pathlib import Path

from portal_files.core.constants import (
    AUTO_RENAME_START,
    DEFAULT_MAX_RENAME_ATTEMPTS,
)
from portal_files.core.errors import ConflictError, ConflictUnresolvedError
from portal_files.core.schemas import ConflictAction, ConflictDecision, ConflictPolicy
from portal_files.fs.paths import join_name, split_name

ExistsPredicate = Callable[[Path], bool]


def path_exists(path: Path) -> bool:
    """Default existence predicate; dangling symlinks count as existing."""
    return path.exists() or path.is_symlink()


def candidate_names(name: str, start: int = AUTO_RENAME_START) -> Iterator[str]:
    """Yield ``"stem N.ext"`` names for N = start, start + 1, ...

    Examples:
        >>> names = candidate_names("report.txt")
        >>> next(names), next(names)
        ('report 2.txt', 'report 3.txt')
    """
    stem, ext = split_name(name)
    counter = start
    while True:
        yield join_name(f"{stem} {counter}", ext)
        counter += 1


def resolve_conflict(
    desired: Path,
    exists: ExistsPredicate = path_exists,
    policy: ConflictPolicy = ConflictPolicy.RENAME,
    *,
    max_attempts: int = DEFAULT_MAX_RENAME_ATTEMPTS,
) -> ConflictDecision:
    """Decide where a write to ``desired`` should go.

    Args:
        desired: Destination the caller asked for
        exists: Predicate reporting whether a path is occupied
        policy: Conflict policy for this request
        max_attempts: Auto-rename attempt budget

    Returns:
        ConflictDecision; PROCEED when ``desired`` is free

    Raises:
        ConflictUnresolvedError: If auto-rename exhausts ``max_attempts``
    """
    if not exists(desired):
        return ConflictDecision(
            action=ConflictAction.PROCEED, path=desired, desired=desired
        )

    if policy is ConflictPolicy.FAIL:
        return ConflictDecision(
            action=ConflictAction.CONFLICT, path=desired, desired=desired
        )
    if policy is ConflictPolicy.REPLACE:
        return ConflictDecision(
            action=ConflictAction.REPLACE, path=desired, desired=desired
        )
    if policy is ConflictPolicy.SKIP:
        return ConflictDecision(action=ConflictAction.SKIP, path=None, desired=desired)

    names = candidate_names(desired.name)
    for _ in range(max_attempts):
        candidate = desired.with_name(next(names))
        if not exists(candidate):
            return ConflictDecision(
                action=ConflictAction.RENAME, path=candidate, desired=desired
            )

    raise ConflictUnresolvedError(desired, max_attempts)


def require_destination(decision: ConflictDecision) -> Path:
    """Return the path to write, raising for a terminal CONFLICT decision.

    Raises:
        ConflictError: If the decision is CONFLICT
        ValueError: If the decision is SKIP (there is nothing to write)
    """
    if decision.action is ConflictAction.CONFLICT:
        raise ConflictError(decision.desired)
    if decision.path is None:
        raise ValueError("decision does not produce a destination")
    return decision.path
