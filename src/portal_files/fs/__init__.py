"""Guarded filesystem primitives for the sandbox.

This module provides the path guard, the conflict resolver, per-directory
locks and the low-level move/copy/write helpers used by the core.
"""

from portal_files.fs.conflicts import candidate_names, resolve_conflict
from portal_files.fs.fs_ops import copy_exclusive, move_path, remove_path, write_atomic
from portal_files.fs.locks import DirectoryLocks
from portal_files.fs.paths import locate_within, normalize_path, resolve_within

__all__ = [
    "DirectoryLocks",
    "candidate_names",
    "copy_exclusive",
    "locate_within",
    "move_path",
    "normalize_path",
    "remove_path",
    "resolve_conflict",
    "resolve_within",
    "write_atomic",
]
