"""Custom exceptions for Portal Files.

This module defines typed exceptions used throughout the file-management core.
Every public operation either returns its value or raises one of these; no
error is silently discarded.
"""

from pathlib import Path
from typing import Any


class PortalFilesError(Exception):
    """Base exception for all Portal Files errors.

    All custom exceptions should inherit from this base class to allow
    for broad exception handling when needed.
    """

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for callers that serialize errors."""
        return {"error": "portal_files_error", "message": str(self)}


# ============================================================================
# Path errors
# ============================================================================


class PathError(PortalFilesError):
    """Base class for path validation failures."""


class OutsideRootError(PathError):
    """Raised when a path resolves outside the sandbox root.

    Attributes:
        root: The sandbox root
        candidate: The path that was rejected
    """

    def __init__(self, root: Path, candidate: Path | str) -> None:
        self.root = root
        self.candidate = candidate
        super().__init__(f"Path '{candidate}' resolves outside root '{root}'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "outside_root",
            "root": str(self.root),
            "candidate": str(self.candidate),
        }

    def __repr__(self) -> str:
        return f"OutsideRootError(root={self.root!r}, candidate={self.candidate!r})"


class InvalidNameError(PathError):
    """Raised when a file name is not a single usable path component."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid name {name!r}: {reason}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": "invalid_name", "name": self.name, "reason": self.reason}


# ============================================================================
# Conflict errors
# ============================================================================


class ConflictError(PortalFilesError):
    """Raised when an explicit rename/move/create target already exists.

    Explicit operations never auto-rename; the caller must pick another name
    or retry with a permissive conflict policy.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Destination already exists: {path}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": "conflict", "path": str(self.path)}

    def __repr__(self) -> str:
        return f"ConflictError(path={self.path!r})"


class ConflictUnresolvedError(PortalFilesError):
    """Raised when auto-rename exhausts its attempt budget.

    Attributes:
        path: The originally desired path
        attempts: Number of candidate names tried
    """

    def __init__(self, path: Path, attempts: int) -> None:
        self.path = path
        self.attempts = attempts
        super().__init__(
            f"Could not find a free name for '{path}' after {attempts} attempts"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "conflict_unresolved",
            "path": str(self.path),
            "attempts": self.attempts,
        }


# ============================================================================
# I/O errors
# ============================================================================


class FileOperationError(PortalFilesError):
    """Raised when an underlying read/write/delete fails.

    The reason is carried verbatim from the operating system. Nothing in the
    core retries these automatically.

    Attributes:
        operation: Short operation name (e.g. 'rename', 'delete')
        path: Path the operation was acting on
        reason: Human-readable failure reason
    """

    def __init__(self, operation: str, path: Path | str, reason: str) -> None:
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(f"{operation} failed for '{path}': {reason}")

    @classmethod
    def from_os_error(
        cls, operation: str, path: Path | str, exc: OSError
    ) -> "FileOperationError":
        reason = exc.strerror or str(exc)
        return cls(operation, path, reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "io_error",
            "operation": self.operation,
            "path": str(self.path),
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        return (
            f"FileOperationError(operation={self.operation!r}, "
            f"path={self.path!r}, reason={self.reason!r})"
        )


# ============================================================================
# Archive errors
# ============================================================================


class ArchiveError(PortalFilesError):
    """Raised when packing or unpacking an archive fails.

    Attributes:
        kind: One of 'invalid_format', 'io_failure', 'bad_password', 'cancelled'
        path: Archive path involved
        reason: Human-readable failure reason
        partial: True if any output was written before the failure
        written: Paths that were fully written before the failure
    """

    INVALID_FORMAT = "invalid_format"
    IO_FAILURE = "io_failure"
    BAD_PASSWORD = "bad_password"
    CANCELLED = "cancelled"

    def __init__(
        self,
        kind: str,
        path: Path,
        reason: str,
        *,
        written: list[Path] | None = None,
    ) -> None:
        self.kind = kind
        self.path = path
        self.reason = reason
        self.written = list(written or [])
        self.partial = bool(self.written)

        message = f"Archive {kind} for '{path}': {reason}"
        if self.partial:
            message += f" ({len(self.written)} entries written before failure)"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "archive_error",
            "kind": self.kind,
            "path": str(self.path),
            "reason": self.reason,
            "partial": self.partial,
            "written": [str(p) for p in self.written],
        }

    def __repr__(self) -> str:
        return (
            f"ArchiveError(kind={self.kind!r}, path={self.path!r}, "
            f"partial={self.partial})"
        )


# ============================================================================
# Search errors
# ============================================================================


class SearchCancelledError(PortalFilesError):
    """Raised when a recursive search is cancelled before completion."""

    def __init__(self, base: Path) -> None:
        self.base = base
        super().__init__(f"Search under '{base}' was cancelled")


# ============================================================================
# Batch rename errors
# ============================================================================


class RenameError(PortalFilesError):
    """Base class for batch rename failures."""


class InvalidRenameSpecError(RenameError):
    """Raised when a rename spec fails validation before any filesystem call."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid rename spec: {reason}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": "invalid_spec", "reason": self.reason}


class BatchRenameConflictError(RenameError):
    """Raised when preview destinations collide; nothing has been renamed.

    Attributes:
        collisions: Mapping of destination name to the reason it collides
    """

    def __init__(self, collisions: dict[str, str]) -> None:
        self.collisions = collisions
        names = ", ".join(sorted(collisions))
        super().__init__(f"Batch rename destinations collide: {names}")

    def to_dict(self) -> dict[str, Any]:
        return {"error": "batch_conflict", "collisions": dict(self.collisions)}


class PartialRenameError(RenameError):
    """Raised when a batch commit stops partway.

    Renames applied before the failure are NOT rolled back.

    Attributes:
        applied_count: Number of renames applied before the failure
        failed_at: Index (in input order) of the entry that failed
        applied: (old, new) path pairs that were applied
        reason: Failure reason for the entry at `failed_at`
    """

    def __init__(
        self,
        applied_count: int,
        failed_at: int,
        applied: list[tuple[Path, Path]],
        reason: str,
    ) -> None:
        self.applied_count = applied_count
        self.failed_at = failed_at
        self.applied = applied
        self.reason = reason
        super().__init__(
            f"Batch rename stopped at index {failed_at} after "
            f"{applied_count} renames: {reason}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "partial_failure",
            "applied_count": self.applied_count,
            "failed_at": self.failed_at,
            "applied": [[str(old), str(new)] for old, new in self.applied],
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        return (
            f"PartialRenameError(applied_count={self.applied_count}, "
            f"failed_at={self.failed_at})"
        )
