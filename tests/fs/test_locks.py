"""Tests for per-directory locks."""

import threading
from pathlib import Path

from portal_files.fs.locks import DirectoryLocks


class TestDirectoryLocks:
    def test_locks_are_dropped_after_release(self, tmp_path: Path) -> None:
        locks = DirectoryLocks()

        for index in range(50):
            with locks.hold(tmp_path / f"dir{index}", tmp_path):
                assert len(locks) == 2

        assert len(locks) == 0

    def test_same_directory_is_serialized(self, tmp_path: Path) -> None:
        locks = DirectoryLocks()
        entered = threading.Event()
        release = threading.Event()
        order: list[str] = []

        def holder() -> None:
            with locks.hold(tmp_path):
                order.append("first")
                entered.set()
                release.wait(timeout=5)

        def waiter() -> None:
            entered.wait(timeout=5)
            with locks.hold(tmp_path):
                order.append("second")

        threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
        for thread in threads:
            thread.start()
        entered.wait(timeout=5)
        release.set()
        for thread in threads:
            thread.join(timeout=5)

        assert order == ["first", "second"]
        assert len(locks) == 0

    def test_duplicate_directories_are_held_once(self, tmp_path: Path) -> None:
        locks = DirectoryLocks()
        with locks.hold(tmp_path, tmp_path):
            assert len(locks) == 1
