"""Async facade over FileManagerCore.

Every call runs the synchronous core operation in a worker thread via anyio,
so listing, search, checksum and archive work never blocks the event loop.
Progress callbacks passed to this facade are invoked on the event loop
thread, not on the worker.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, TypeVar

import anyio
import anyio.from_thread
import anyio.to_thread

from portal_files.core import batch_rename
from portal_files.core.checksum import ALL_ALGORITHMS
from portal_files.core.file_manager import FileManagerCore
from portal_files.core.progress import CancellationToken, ProgressCallback
from portal_files.core.schemas import (
    ArchiveEntryInfo,
    ArchiveJob,
    ChecksumSet,
    ConflictPolicy,
    DirectoryEntry,
    DiskUsage,
    FileInfo,
    HashAlgorithm,
    OperationResult,
    RenameSpec,
    SearchCriteria,
    SortKey,
)

T = TypeVar("T")


class AsyncFileService:
    """Run FileManagerCore operations off the event loop.

    Args:
        core: The core that owns the sandbox state
        limiter: Optional capacity limiter bounding concurrent worker threads
    """

    def __init__(
        self,
        core: FileManagerCore,
        *,
        limiter: anyio.CapacityLimiter | None = None,
    ) -> None:
        self.core = core
        self._limiter = limiter

    async def _run(self, func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
        call = functools.partial(func, *args, **kwargs)
        return await anyio.to_thread.run_sync(call, limiter=self._limiter)

    @staticmethod
    def _on_loop(callback: ProgressCallback | None) -> ProgressCallback | None:
        """Wrap ``callback`` so worker-thread calls run on the event loop."""
        if callback is None:
            return None

        def relay(fraction: float) -> None:
            anyio.from_thread.run_sync(callback, fraction)

        return relay

    # Navigation / listing

    async def list_current(self, sort_key: SortKey = SortKey.NAME) -> list[DirectoryEntry]:
        return await self._run(self.core.list_current, sort_key)

    async def list_directory(
        self, path: str | Path, sort_key: SortKey = SortKey.NAME
    ) -> list[DirectoryEntry]:
        return await self._run(self.core.list_directory, path, sort_key)

    async def navigate_into(self, entry: DirectoryEntry) -> Path:
        return await self._run(self.core.navigate_into, entry)

    async def navigate_to(self, path: str | Path) -> Path:
        return await self._run(self.core.navigate_to, path)

    async def navigate_up(self) -> Path:
        return await self._run(self.core.navigate_up)

    # Queries

    async def search(
        self,
        criteria: SearchCriteria,
        base: str | Path | None = None,
        result_cap: int | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> list[Path]:
        """Search off-thread; the full result list is returned at once."""
        return await self._run(
            self.core.search, criteria, base, result_cap, cancel_token=cancel_token
        )

    async def compute_checksums(
        self,
        path: str | Path,
        algorithms: Iterable[HashAlgorithm | str] = ALL_ALGORITHMS,
    ) -> ChecksumSet:
        return await self._run(self.core.compute_checksums, path, algorithms)

    async def file_info(self, path: str | Path) -> FileInfo:
        return await self._run(self.core.file_info, path)

    async def disk_usage(self, path: str | Path | None = None) -> DiskUsage:
        return await self._run(self.core.disk_usage, path)

    async def inspect_archive(self, archive: str | Path) -> list[ArchiveEntryInfo]:
        return await self._run(self.core.inspect_archive, archive)

    # Mutations

    async def create_directory(
        self,
        name: str,
        parent: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        return await self._run(self.core.create_directory, name, parent, policy)

    async def create_file(
        self,
        name: str,
        content: bytes | str = b"",
        parent: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        return await self._run(self.core.create_file, name, content, parent, policy)

    async def rename(self, path: str | Path, new_name: str) -> OperationResult:
        return await self._run(self.core.rename, path, new_name)

    async def move(
        self,
        path: str | Path,
        destination_dir: str | Path,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        return await self._run(self.core.move, path, destination_dir, policy)

    async def duplicate(
        self,
        path: str | Path,
        destination_dir: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
    ) -> OperationResult:
        return await self._run(self.core.duplicate, path, destination_dir, policy)

    async def paste(
        self, paths: Iterable[str | Path], destination_dir: str | Path | None = None
    ) -> list[Path]:
        return await self._run(self.core.paste, list(paths), destination_dir)

    async def import_from(
        self,
        external_path: str | Path,
        destination_dir: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
    ) -> OperationResult:
        return await self._run(self.core.import_from, external_path, destination_dir, policy)

    async def delete(self, path: str | Path) -> OperationResult:
        return await self._run(self.core.delete, path)

    async def replace_in_file(
        self,
        path: str | Path,
        find: str,
        replace: str,
        *,
        case_sensitive: bool = True,
    ) -> int:
        return await self._run(
            self.core.replace_in_file, path, find, replace, case_sensitive=case_sensitive
        )

    # Archives

    async def create_archive(
        self,
        paths: Sequence[str | Path],
        name: str,
        destination_dir: str | Path | None = None,
        on_progress: ProgressCallback | None = None,
        *,
        password: str | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
        cancel_token: CancellationToken | None = None,
    ) -> ArchiveJob:
        return await self._run(
            self.core.create_archive,
            list(paths),
            name,
            destination_dir,
            self._on_loop(on_progress),
            password=password,
            policy=policy,
            cancel_token=cancel_token,
        )

    async def extract_archive(
        self,
        archive: str | Path,
        destination_dir: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
        on_progress: ProgressCallback | None = None,
        *,
        password: str | None = None,
        delete_archive: bool = False,
        cancel_token: CancellationToken | None = None,
    ) -> ArchiveJob:
        return await self._run(
            self.core.extract_archive,
            archive,
            destination_dir,
            policy,
            self._on_loop(on_progress),
            password=password,
            delete_archive=delete_archive,
            cancel_token=cancel_token,
        )

    # Batch rename

    def preview_rename(self, files: Sequence[str | Path], spec: RenameSpec) -> list[str]:
        """Pure and cheap; runs inline."""
        return batch_rename.preview(files, spec)

    async def commit_rename(
        self,
        files: Sequence[str | Path],
        names: Sequence[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[Path]:
        return await self._run(
            batch_rename.commit,
            self.core,
            list(files),
            list(names),
            self._on_loop(on_progress),
        )
