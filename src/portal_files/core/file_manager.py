"""Sandboxed file manager core.

FileManagerCore owns the sandbox root and the current browsing directory.
It lists directories live from disk and performs the mutating operations
(create, rename, move, duplicate, delete, import) by composing the path
guard, the conflict resolver and the guarded filesystem primitives. Every
mutation that resolves a destination holds the per-directory lock of each
directory it touches until the write completes.
"""

import os
import re
import stat
import threading
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

import structlog

from portal_files.config import Settings, load_settings
from portal_files.core.archive import ArchiveEngine
from portal_files.core.checksum import ALL_ALGORITHMS, compute_all
from portal_files.core.errors import ConflictError, FileOperationError
from portal_files.core.progress import CancellationToken, ProgressCallback
from portal_files.core.schemas import (
    ArchiveEntryInfo,
    ArchiveJob,
    ChecksumSet,
    ConflictAction,
    ConflictDecision,
    ConflictPolicy,
    DirectoryEntry,
    DiskUsage,
    DiskUsageItem,
    FileInfo,
    HashAlgorithm,
    OperationResult,
    SearchCriteria,
    SortKey,
)
from portal_files.core.search import search as run_search
from portal_files.fs.conflicts import path_exists, require_destination, resolve_conflict
from portal_files.fs.fs_ops import (
    copy_exclusive,
    move_path,
    remove_path,
    same_entry,
    write_atomic,
)
from portal_files.fs.locks import DirectoryLocks
from portal_files.fs.paths import (
    category_for,
    is_within,
    locate_within,
    normalize_path,
    resolve_within,
    split_name,
    validate_name,
)

logger = structlog.get_logger(__name__)


class IconLookup(Protocol):
    """Read-only custom icon store keyed by absolute path string.

    A plain ``dict`` satisfies this protocol.
    """

    def get(self, key: str, /) -> str | None: ...


def _timestamp(value: float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=UTC)


_SORT_KEYS: dict[SortKey, Callable[[DirectoryEntry], Any]] = {
    SortKey.NAME: lambda e: e.name.casefold(),
    # newest first; entries without a timestamp last
    SortKey.DATE: lambda e: -(e.modified_at.timestamp() if e.modified_at else float("-inf")),
    SortKey.SIZE: lambda e: -(e.size_bytes or 0),
    SortKey.TYPE: lambda e: (split_name(e.name)[1].casefold(), e.name.casefold()),
}


def _sort_entries(
    entries: list[DirectoryEntry], sort_key: SortKey
) -> list[DirectoryEntry]:
    """Sort with directories first, then by ``sort_key``."""
    secondary = _SORT_KEYS[sort_key]
    return sorted(entries, key=lambda e: (not e.is_directory, secondary(e)))


class FileManagerCore:
    """Navigation state and safe file operations confined to one root.

    Instances are independent; construct one per root (tests construct them
    against temporary directories).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        root: str | Path | None = None,
        icon_lookup: IconLookup | None = None,
        archive_engine: ArchiveEngine | None = None,
    ) -> None:
        """Initialize the core.

        Args:
            settings: Resolved settings; loaded from the environment if omitted
            root: Root override used when ``settings`` is omitted
            icon_lookup: Optional custom icon store consulted by listings
            archive_engine: Optional engine override
        """
        self.settings = settings or load_settings(root)
        self._root = self.settings.root
        self._current = self._root
        self._state_lock = threading.Lock()
        self._locks = DirectoryLocks()
        self._icons: IconLookup = icon_lookup if icon_lookup is not None else {}
        self.archives = archive_engine or ArchiveEngine(
            chunk_size=self.settings.chunk_size,
            max_rename_attempts=self.settings.max_rename_attempts,
        )
        self._log = logger.bind(root=str(self._root))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    @property
    def current_directory(self) -> Path:
        with self._state_lock:
            return self._current

    @property
    def depth(self) -> int:
        """0 when at root, otherwise the number of components below root."""
        return len(self.current_directory.relative_to(self._root).parts)

    @property
    def at_root(self) -> bool:
        return self.current_directory == self._root

    def guard(self, candidate: str | Path) -> Path:
        """Resolve ``candidate`` (absolute or root-relative) inside the root."""
        return resolve_within(self._root, candidate)

    def locate(self, candidate: str | Path) -> Path:
        """Like :meth:`guard`, but a final symlink names the link itself."""
        return locate_within(self._root, candidate)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate_into(self, entry: DirectoryEntry) -> Path:
        """Enter a listed directory.

        Raises:
            FileOperationError: If the entry is not a directory
            OutsideRootError: If the entry resolves outside the root
        """
        if not entry.is_directory:
            raise FileOperationError("navigate", entry.absolute_path, "not a directory")
        return self.navigate_to(entry.absolute_path)

    def navigate_to(self, path: str | Path) -> Path:
        """Jump to any existing directory inside the root."""
        target = self.guard(path)
        if not target.is_dir():
            raise FileOperationError("navigate", target, "not a directory")
        with self._state_lock:
            self._current = target
        self._log.debug("files.navigate", current=str(target))
        return target

    def navigate_up(self) -> Path:
        """Move to the parent directory; a no-op at the root."""
        with self._state_lock:
            if self._current != self._root:
                parent = self._current.parent
                if is_within(self._root, parent):
                    self._current = parent
            return self._current

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_current(self, sort_key: SortKey = SortKey.NAME) -> list[DirectoryEntry]:
        """List the current directory, directories first."""
        return self.list_directory(self.current_directory, sort_key)

    def list_directory(
        self, path: str | Path, sort_key: SortKey = SortKey.NAME
    ) -> list[DirectoryEntry]:
        """List ``path`` with size, mtime and custom icon metadata.

        Raises:
            FileOperationError: If the directory cannot be read
        """
        directory = self.guard(path)
        entries: list[DirectoryEntry] = []
        try:
            with os.scandir(directory) as it:
                for item in it:
                    entries.append(self._entry_for(item))
        except OSError as e:
            raise FileOperationError.from_os_error("list", directory, e) from e
        return _sort_entries(entries, sort_key)

    def _entry_for(self, item: os.DirEntry[str]) -> DirectoryEntry:
        try:
            st = item.stat()
        except FileNotFoundError:
            # dangling symlink
            st = item.stat(follow_symlinks=False)
        is_dir = stat.S_ISDIR(st.st_mode)
        absolute = Path(item.path)
        return DirectoryEntry(
            name=item.name,
            absolute_path=absolute,
            is_directory=is_dir,
            size_bytes=None if is_dir else st.st_size,
            modified_at=_timestamp(st.st_mtime),
            custom_icon_ref=self._icons.get(str(absolute)),
            category=category_for(item.name, is_dir),
        )

    def _result(
        self, path: Path | None, action: ConflictAction = ConflictAction.PROCEED
    ) -> OperationResult:
        return OperationResult(path=path, action=action, entries=self.list_current())

    def _existing_dir(self, path: str | Path | None, operation: str) -> Path:
        directory = self.guard(path) if path is not None else self.current_directory
        if not directory.is_dir():
            raise FileOperationError(operation, directory, "not a directory")
        return directory

    def _existing(self, path: str | Path, operation: str) -> Path:
        target = self.locate(path)
        if not path_exists(target):
            raise FileOperationError(operation, target, "no such file or directory")
        return target

    def _resolve(
        self, desired: Path, policy: ConflictPolicy, source: Path | None = None
    ) -> ConflictDecision:
        def exists(candidate: Path) -> bool:
            if not path_exists(candidate):
                return False
            # A case-only rename sees its own source as the destination
            if source is not None and candidate != source:
                return not same_entry(candidate, source)
            return True

        return resolve_conflict(
            desired,
            exists,
            policy,
            max_attempts=self.settings.max_rename_attempts,
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_directory(
        self,
        name: str,
        parent: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        """Create a directory named ``name`` in ``parent`` (default: current)."""
        validate_name(name)
        directory = self._existing_dir(parent, "mkdir")
        desired = self.locate(directory / name)

        with self._locks.hold(directory):
            decision = self._resolve(desired, policy)
            if decision.action is ConflictAction.SKIP:
                return self._result(None, decision.action)
            target = require_destination(decision)
            if decision.action is ConflictAction.REPLACE:
                remove_path(target)
            try:
                target.mkdir()
            except FileExistsError as e:
                raise ConflictError(target) from e
            except OSError as e:
                raise FileOperationError.from_os_error("mkdir", target, e) from e

        self._log.info("files.mkdir", path=str(target), action=decision.action.value)
        return self._result(target, decision.action)

    def create_file(
        self,
        name: str,
        content: bytes | str = b"",
        parent: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        """Atomically create a file with ``content`` in ``parent``."""
        validate_name(name)
        data = content.encode("utf-8") if isinstance(content, str) else content
        directory = self._existing_dir(parent, "create")
        desired = self.locate(directory / name)

        with self._locks.hold(directory):
            decision = self._resolve(desired, policy)
            if decision.action is ConflictAction.SKIP:
                return self._result(None, decision.action)
            target = require_destination(decision)
            replacing = decision.action is ConflictAction.REPLACE
            if replacing and target.is_dir():
                remove_path(target)
            write_atomic(target, data, exclusive=not replacing)

        self._log.info(
            "files.create", path=str(target), size=len(data), action=decision.action.value
        )
        return self._result(target, decision.action)

    # ------------------------------------------------------------------
    # Rename / move
    # ------------------------------------------------------------------

    def rename(self, path: str | Path, new_name: str) -> OperationResult:
        """Rename in place. Never auto-renames; an occupied name is a conflict.

        Raises:
            ConflictError: If ``new_name`` is taken by another file
        """
        validate_name(new_name)
        source = self._existing(path, "rename")
        if source == self._root:
            raise FileOperationError("rename", source, "cannot rename the root directory")
        desired = self.locate(source.parent / new_name)
        if desired == source:
            return self._result(source)

        with self._locks.hold(source.parent):
            decision = self._resolve(desired, ConflictPolicy.FAIL, source=source)
            target = require_destination(decision)
            move_path(source, target)

        self._log.info("files.rename", src=str(source), dst=str(target))
        return self._result(target)

    def move(
        self,
        path: str | Path,
        destination_dir: str | Path,
        policy: ConflictPolicy = ConflictPolicy.FAIL,
    ) -> OperationResult:
        """Move ``path`` into ``destination_dir``.

        Explicit moves default to FAIL; paste-style callers may pass RENAME.
        """
        source = self._existing(path, "move")
        if source == self._root:
            raise FileOperationError("move", source, "cannot move the root directory")
        directory = self._existing_dir(destination_dir, "move")
        if directory == source or directory.is_relative_to(source):
            raise FileOperationError("move", source, "cannot move a directory into itself")
        desired = self.locate(directory / source.name)
        if desired == source:
            return self._result(source)

        with self._locks.hold(source.parent, directory):
            decision = self._resolve(desired, policy, source=source)
            if decision.action is ConflictAction.SKIP:
                return self._result(None, decision.action)
            target = require_destination(decision)
            move_path(source, target, replace=decision.action is ConflictAction.REPLACE)

        self._log.info(
            "files.move", src=str(source), dst=str(target), action=decision.action.value
        )
        return self._result(target, decision.action)

    # ------------------------------------------------------------------
    # Copy
    # ------------------------------------------------------------------

    def duplicate(
        self,
        path: str | Path,
        destination_dir: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
    ) -> OperationResult:
        """Copy ``path`` into ``destination_dir`` (default: its own directory).

        With the default policy a same-named copy becomes ``"name 2.ext"``.
        """
        source = self._existing(path, "duplicate")
        directory = (
            self._existing_dir(destination_dir, "duplicate")
            if destination_dir is not None
            else source.parent
        )
        target, action = self._copy_into(source, directory, policy, "files.duplicate")
        return self._result(target, action)

    def paste(
        self,
        paths: Iterable[str | Path],
        destination_dir: str | Path | None = None,
    ) -> list[Path]:
        """Duplicate every path into ``destination_dir`` with auto-rename."""
        directory = self._existing_dir(destination_dir, "paste")
        created: list[Path] = []
        for path in paths:
            source = self._existing(path, "paste")
            target, _ = self._copy_into(
                source, directory, ConflictPolicy.RENAME, "files.paste"
            )
            if target is not None:
                created.append(target)
        return created

    def import_from(
        self,
        external_path: str | Path,
        destination_dir: str | Path | None = None,
        policy: ConflictPolicy = ConflictPolicy.RENAME,
    ) -> OperationResult:
        """Copy a file or directory from outside the sandbox into it."""
        source = normalize_path(external_path)
        if not path_exists(source):
            raise FileOperationError("import", source, "no such file or directory")
        directory = self._existing_dir(destination_dir, "import")
        target, action = self._copy_into(source, directory, policy, "files.import")
        return self._result(target, action)

    def _copy_into(
        self, source: Path, directory: Path, policy: ConflictPolicy, event: str
    ) -> tuple[Path | None, ConflictAction]:
        desired = self.locate(directory / source.name)
        with self._locks.hold(directory):
            decision = self._resolve(desired, policy)
            if decision.action is ConflictAction.SKIP:
                return None, decision.action
            target = require_destination(decision)
            if target == source:
                raise FileOperationError("copy", source, "source and destination are the same")
            copy_exclusive(source, target, replace=decision.action is ConflictAction.REPLACE)

        self._log.info(event, src=str(source), dst=str(target), action=decision.action.value)
        return target, decision.action

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, path: str | Path) -> OperationResult:
        """Delete a file or directory tree. The root itself cannot be deleted."""
        target = self._existing(path, "delete")
        if target == self._root:
            raise FileOperationError("delete", target, "cannot delete the root directory")

        with self._locks.hold(target.parent):
            remove_path(target)

        with self._state_lock:
            if self._current == target or self._current.is_relative_to(target):
                self._current = target.parent
        self._log.info("files.delete", path=str(target))
        return self._result(None)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def file_info(self, path: str | Path) -> FileInfo:
        """Return detailed metadata for ``path``."""
        target = self._existing(path, "info")
        try:
            lst = target.lstat()
            st = target.stat() if stat.S_ISLNK(lst.st_mode) and target.exists() else lst
        except OSError as e:
            raise FileOperationError.from_os_error("info", target, e) from e

        is_dir = stat.S_ISDIR(st.st_mode)
        return FileInfo(
            name=target.name or str(target),
            absolute_path=target,
            is_directory=is_dir,
            is_symlink=stat.S_ISLNK(lst.st_mode),
            size_bytes=st.st_size,
            created_at=_timestamp(getattr(st, "st_birthtime", None)),
            modified_at=_timestamp(st.st_mtime),
            accessed_at=_timestamp(st.st_atime),
            permissions=stat.filemode(st.st_mode),
            category=category_for(target.name, is_dir),
        )

    def disk_usage(self, path: str | Path | None = None) -> DiskUsage:
        """Recursive size of each child of ``path``, largest first."""
        directory = self._existing_dir(path, "du")
        items: list[DiskUsageItem] = []
        try:
            with os.scandir(directory) as it:
                children = [(Path(e.path), e.is_dir(follow_symlinks=False)) for e in it]
        except OSError as e:
            raise FileOperationError.from_os_error("du", directory, e) from e

        for child, is_dir in children:
            items.append(
                DiskUsageItem(name=child.name, size_bytes=_tree_size(child), is_directory=is_dir)
            )

        items.sort(key=lambda item: item.size_bytes, reverse=True)
        return DiskUsage(
            path=directory,
            total_bytes=sum(item.size_bytes for item in items),
            items=items,
        )

    # ------------------------------------------------------------------
    # Text editing
    # ------------------------------------------------------------------

    def replace_in_file(
        self,
        path: str | Path,
        find: str,
        replace: str,
        *,
        case_sensitive: bool = True,
    ) -> int:
        """Replace every occurrence of ``find`` in a UTF-8 text file.

        Returns:
            Number of replacements made; the file is rewritten atomically
            only when that number is non-zero
        """
        if not find:
            raise ValueError("find text must not be empty")
        # edits go through a symlink to the file it points to
        target = self.guard(self._existing(path, "replace"))
        if target.is_dir():
            raise FileOperationError("replace", target, "is a directory")

        with self._locks.hold(target.parent):
            try:
                text = target.read_bytes().decode("utf-8")
            except UnicodeDecodeError as e:
                raise FileOperationError("replace", target, "not a UTF-8 text file") from e
            except OSError as e:
                raise FileOperationError.from_os_error("replace", target, e) from e

            flags = 0 if case_sensitive else re.IGNORECASE
            pattern = re.compile(re.escape(find), flags)
            updated, count = pattern.subn(lambda _m: replace, text)
            if count:
                write_atomic(target, updated.encode("utf-8"), exclusive=False)

        self._log.info("files.replace_text", path=str(target), replacements=count)
        return count

    # ------------------------------------------------------------------
    # Search / checksums
    # ------------------------------------------------------------------

    def search(
        self,
        criteria: SearchCriteria,
        base: str | Path | None = None,
        result_cap: int | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> list[Path]:
        """Recursive search below ``base`` (default: current directory)."""
        directory = self._existing_dir(base, "search")
        return run_search(
            directory,
            criteria,
            result_cap or self.settings.search_cap,
            cancel_token=cancel_token,
        )

    def compute_checksums(
        self,
        path: str | Path,
        algorithms: Iterable[HashAlgorithm | str] = ALL_ALGORITHMS,
    ) -> ChecksumSet:
        """Single-pass digests of a file inside the sandbox."""
        target = self.guard(path)
        return compute_all(target, algorithms, chunk_size=self.settings.chunk_size)

    # ------------------------------------------------------------------
    # Archives
    # ------------------------------------------------------------------

    def create_archive(
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
        """Pack ``paths`` into ``name`` (``.zip`` appended when missing)."""
        if not name.lower().endswith(".zip"):
            name = f"{name}.zip"
        validate_name(name)
        sources = [self._existing(p, "zip") for p in paths]
        directory = self._existing_dir(destination_dir, "zip")
        desired = self.locate(directory / name)

        with self._locks.hold(directory):
            decision = self._resolve(desired, policy)
            if decision.action is ConflictAction.SKIP:
                raise FileOperationError("zip", desired, "archive exists and policy is skip")
            target = require_destination(decision)
            job = self.archives.pack(
                sources, target, on_progress, password=password, cancel_token=cancel_token
            )
        return job

    def extract_archive(
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
        """Unpack ``archive`` into ``destination_dir`` (default: current).

        ``delete_archive`` removes the source archive only after a fully
        successful extraction, as a separate explicit step.
        """
        source = self._existing(archive, "unzip")
        directory = self._existing_dir(destination_dir, "unzip")
        targets = self._unpack_directories(source, directory)

        with self._locks.hold(*targets):
            job = self.archives.unpack(
                source,
                directory,
                policy,
                on_progress,
                password=password,
                cancel_token=cancel_token,
            )

        if delete_archive:
            with self._locks.hold(source.parent):
                remove_path(source)
            self._log.info("files.archive_deleted", path=str(source))
        return job

    def _unpack_directories(self, archive: Path, destination: Path) -> set[Path]:
        """Every directory an unpack of ``archive`` into ``destination`` writes to.

        Entries that escape ``destination`` are left out; the engine rejects
        the archive for them before writing anything.
        """
        directories = {destination}
        for entry in self.archives.inspect(archive):
            target = normalize_path(destination / entry.name.rstrip("/"))
            directories.add(target if entry.is_directory else target.parent)
        return {d for d in directories if is_within(destination, d)}

    def inspect_archive(self, archive: str | Path) -> list[ArchiveEntryInfo]:
        return self.archives.inspect(self._existing(archive, "inspect"))


def _tree_size(path: Path) -> int:
    """Total size in bytes of a file or directory tree (symlinks not followed)."""
    if not path.is_dir() or path.is_symlink():
        return path.lstat().st_size
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for filename in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, filename)).st_size
            except FileNotFoundError:
                # removed while walking
                continue
    return total
