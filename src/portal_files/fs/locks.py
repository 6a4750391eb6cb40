"""Per-directory serialization for mutating operations."""

import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from pathlib import Path


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class DirectoryLocks:
    """Hands out one lock per canonical directory path.

    Mutations that resolve a destination and then write it hold the lock of
    every directory they touch, so two operations cannot both pick the same
    free name from a stale view. Locks for several directories are taken in
    sorted order to avoid lock-order inversions.

    A directory's lock exists only while some caller holds or waits for it,
    so the table stays as small as the number of in-flight operations.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[Path, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _acquire_entry(self, directory: Path) -> _Entry:
        with self._guard:
            entry = self._entries.get(directory)
            if entry is None:
                entry = self._entries[directory] = _Entry()
            entry.users += 1
            return entry

    def _release_entry(self, directory: Path, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[directory]

    @contextmanager
    def _holding(self, directory: Path) -> Iterator[None]:
        entry = self._acquire_entry(directory)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(directory, entry)

    @contextmanager
    def hold(self, *directories: Path) -> Iterator[None]:
        """Hold the locks of all ``directories`` for the duration of the block."""
        ordered = sorted(set(directories), key=str)
        with ExitStack() as stack:
            for directory in ordered:
                stack.enter_context(self._holding(directory))
            yield
