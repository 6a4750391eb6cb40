"""Guarded filesystem primitives.

This module provides the move/copy/remove/write operations the file manager
composes. Each primitive re-checks the destination immediately before
writing, uses atomic create-if-absent where the platform offers it, and
converts ``OSError`` into typed errors.
"""

import errno
import os
import shutil
import tempfile
import uuid
from pathlib import Path

from portal_files.core.errors import ConflictError, FileOperationError
from portal_files.fs.conflicts import path_exists
from portal_files.utils.debug import debug

#: Buffer size for streamed copies
COPY_BUFFER_SIZE = 1024 * 1024


def get_temp_path_for_case_change(dst: Path) -> Path:
    """Get a temporary sibling path for case-only renames.

    Args:
        dst: Destination path that might conflict due to case

    Returns:
        Temporary path to use for a two-step case change
    """
    temp_suffix = f".tmpcase_{uuid.uuid4().hex[:8]}"
    return dst.with_name(dst.name + temp_suffix)


def same_entry(a: Path, b: Path) -> bool:
    """True if both paths name the same directory entry.

    Symlinks are not followed, so a link and its target are different
    entries. Case variants on a case-insensitive filesystem are the same.
    """
    try:
        return os.path.samestat(os.lstat(a), os.lstat(b))
    except OSError:
        return False


def remove_path(path: Path) -> None:
    """Delete a file, symlink, or directory tree.

    Raises:
        FileOperationError: If the path cannot be removed
    """
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
        debug(f"Removed: {path}")
    except OSError as e:
        raise FileOperationError.from_os_error("delete", path, e) from e


def move_path(src: Path, dst: Path, *, replace: bool = False) -> Path:
    """Move ``src`` to ``dst``.

    A destination that exists is a conflict unless it is the same file as
    ``src`` (a case-only rename) or ``replace`` is set. Cross-device moves
    fall back to copy + remove.

    Args:
        src: Existing source path
        dst: Destination path
        replace: Overwrite an existing destination

    Returns:
        The destination path

    Raises:
        ConflictError: If ``dst`` exists and ``replace`` is False
        FileOperationError: On any underlying I/O failure
    """
    if not path_exists(src):
        raise FileOperationError("move", src, "source does not exist")

    if path_exists(dst):
        if same_entry(src, dst) and src.name != dst.name:
            return _case_change_rename(src, dst)
        if not replace:
            raise ConflictError(dst)
        remove_path(dst)

    try:
        os.rename(src, dst)
        debug(f"Direct rename: {src} -> {dst}")
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise FileOperationError.from_os_error("move", src, e) from e
        _cross_device_move(src, dst)

    return dst


def _case_change_rename(src: Path, dst: Path) -> Path:
    temp_path = get_temp_path_for_case_change(dst)
    try:
        src.rename(temp_path)
        temp_path.rename(dst)
        debug(f"Case change rename: {src} -> {temp_path} -> {dst}")
    except OSError as e:
        if temp_path.exists() and not src.exists():
            temp_path.rename(src)
        raise FileOperationError.from_os_error("rename", src, e) from e
    return dst


def _cross_device_move(src: Path, dst: Path) -> None:
    try:
        if src.is_dir() and not src.is_symlink():
            shutil.copytree(src, dst, symlinks=True)
        else:
            shutil.copy2(src, dst, follow_symlinks=False)
    except OSError as e:
        if path_exists(dst):
            remove_path(dst)
        raise FileOperationError.from_os_error("move", src, e) from e

    remove_path(src)
    debug(f"Cross-device move: {src} -> {dst}")


def copy_exclusive(src: Path, dst: Path, *, replace: bool = False) -> Path:
    """Copy a file or directory tree to ``dst``.

    Without ``replace`` the destination is created with an exclusive open
    (or ``mkdir`` for directories), so a destination that appeared after
    conflict resolution surfaces as a conflict instead of being clobbered.
    A partial copy is removed before the error propagates.

    Raises:
        ConflictError: If ``dst`` exists and ``replace`` is False
        FileOperationError: On any underlying I/O failure
    """
    if not path_exists(src):
        raise FileOperationError("copy", src, "source does not exist")

    if src.is_dir() and not src.is_symlink():
        if dst == src or dst.is_relative_to(src):
            raise FileOperationError("copy", src, "cannot copy a directory into itself")
        return _copy_tree(src, dst, replace=replace)

    if replace:
        return _copy_file_replacing(src, dst)

    try:
        with open(src, "rb") as reader:
            try:
                writer = open(dst, "xb")
            except FileExistsError as e:
                raise ConflictError(dst) from e
            with writer:
                try:
                    shutil.copyfileobj(reader, writer, COPY_BUFFER_SIZE)
                except OSError:
                    _discard_partial(dst)
                    raise
    except OSError as e:
        raise FileOperationError.from_os_error("copy", src, e) from e

    try:
        shutil.copystat(src, dst)
    except OSError as e:
        debug(f"Could not copy metadata {src} -> {dst}: {e}")
    debug(f"Copied: {src} -> {dst}")
    return dst


def _copy_file_replacing(src: Path, dst: Path) -> Path:
    try:
        fd, temp_name = tempfile.mkstemp(
            dir=dst.parent, prefix=f".{dst.name}.", suffix=".tmp"
        )
        os.close(fd)
    except OSError as e:
        raise FileOperationError.from_os_error("copy", src, e) from e

    temp_path = Path(temp_name)
    try:
        shutil.copy2(src, temp_path)
        if dst.is_dir() and not dst.is_symlink():
            shutil.rmtree(dst)
        os.replace(temp_path, dst)
    except OSError as e:
        _discard_partial(temp_path)
        raise FileOperationError.from_os_error("copy", src, e) from e
    debug(f"Copied (replacing): {src} -> {dst}")
    return dst


def _copy_tree(src: Path, dst: Path, *, replace: bool) -> Path:
    if replace and path_exists(dst):
        remove_path(dst)
    try:
        os.mkdir(dst)
    except FileExistsError as e:
        raise ConflictError(dst) from e
    except OSError as e:
        raise FileOperationError.from_os_error("copy", src, e) from e

    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        _discard_partial(dst)
        raise FileOperationError("copy", src, str(e)) from e
    debug(f"Copied tree: {src} -> {dst}")
    return dst


def _discard_partial(path: Path) -> None:
    if not path_exists(path):
        return
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as e:
        debug(f"Could not remove partial output {path}: {e}")


def write_atomic(path: Path, data: bytes, *, exclusive: bool = True) -> Path:
    """Write ``data`` to ``path`` through a temporary sibling.

    The content becomes visible all at once. With ``exclusive`` the final
    step is a hard link, which fails if ``path`` already exists; on
    filesystems without hard links the destination is re-checked instead.

    Raises:
        ConflictError: If ``exclusive`` and ``path`` exists
        FileOperationError: On any underlying I/O failure
    """
    try:
        fd, temp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as e:
        raise FileOperationError.from_os_error("write", path, e) from e

    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(temp_path, 0o644)

        if exclusive:
            _publish_exclusive(temp_path, path)
        else:
            os.replace(temp_path, path)
    except ConflictError:
        raise
    except OSError as e:
        raise FileOperationError.from_os_error("write", path, e) from e
    finally:
        _discard_partial(temp_path)

    debug(f"Wrote {len(data)} bytes to {path}")
    return path


def _publish_exclusive(temp_path: Path, path: Path) -> None:
    try:
        os.link(temp_path, path)
        return
    except FileExistsError as e:
        raise ConflictError(path) from e
    except OSError as e:
        if e.errno not in (errno.EPERM, errno.ENOTSUP, errno.EXDEV, errno.EMLINK):
            raise

    if path_exists(path):
        raise ConflictError(path)
    os.replace(temp_path, path)
