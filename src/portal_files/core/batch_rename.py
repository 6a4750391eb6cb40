"""Batch renaming: deterministic previews and best-effort sequential commits.

A rename spec applied to an ordered file list yields a preview, one proposed
name per input file in input order. ``commit`` applies a preview through
FileManagerCore.rename after checking every destination up front.

Commit is not transactional: if a rename fails partway, the files already
renamed stay renamed and :class:`PartialRenameError` reports which ones.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from portal_files.core.constants import SEQUENCE_PLACEHOLDER
from portal_files.core.errors import (
    BatchRenameConflictError,
    InvalidNameError,
    InvalidRenameSpecError,
    PartialRenameError,
    PortalFilesError,
)
from portal_files.core.progress import ProgressCallback, ProgressReporter
from portal_files.core.schemas import (
    FindReplaceSpec,
    PrefixSuffixSpec,
    RenamePlan,
    RenameSpec,
    SequentialSpec,
)
from portal_files.fs.conflicts import path_exists
from portal_files.fs.fs_ops import same_entry
from portal_files.fs.paths import join_name, split_name, validate_name

if TYPE_CHECKING:
    from portal_files.core.file_manager import FileManagerCore

logger = structlog.get_logger(__name__)


def validate_spec(spec: RenameSpec) -> None:
    """Reject specs that cannot produce a meaningful rename.

    Raises:
        InvalidRenameSpecError: If the sequential pattern lacks the ``{n}``
            placeholder, the find text is empty, or both prefix and suffix
            are empty
    """
    match spec:
        case SequentialSpec(pattern=pattern):
            if SEQUENCE_PLACEHOLDER not in pattern:
                raise InvalidRenameSpecError(
                    f"pattern must contain the {SEQUENCE_PLACEHOLDER} placeholder"
                )
        case FindReplaceSpec(find=find):
            if not find:
                raise InvalidRenameSpecError("find text must not be empty")
        case PrefixSuffixSpec(prefix=prefix, suffix=suffix):
            if not prefix and not suffix:
                raise InvalidRenameSpecError("prefix or suffix must not be empty")
        case _:
            raise InvalidRenameSpecError(f"unsupported rename spec {spec!r}")


def _new_stem(stem: str, spec: RenameSpec, index: int) -> str:
    match spec:
        case FindReplaceSpec(find=find, replace=replace):
            return stem.replace(find, replace)
        case SequentialSpec(pattern=pattern, start_number=start, pad_width=width):
            number = str(start + index).zfill(width)
            return pattern.replace(SEQUENCE_PLACEHOLDER, number)
        case PrefixSuffixSpec(prefix=prefix, suffix=suffix):
            return f"{prefix}{stem}{suffix}"
    raise InvalidRenameSpecError(f"unsupported rename spec {spec!r}")


def preview(files: Sequence[str | Path], spec: RenameSpec) -> list[str]:
    """Compute the proposed new names without touching the filesystem.

    The extension of each original file is preserved. ``preview(files[::-1])``
    is ``preview(files)[::-1]`` for every spec except sequential, where the
    numbering follows input order.

    Examples:
        >>> preview(["a.jpg", "b.jpg"], SequentialSpec(pattern="File_{n}"))
        ['File_0001.jpg', 'File_0002.jpg']
        >>> preview(["draft draft.txt"], FindReplaceSpec(find="draft", replace="v2"))
        ['v2 v2.txt']

    Raises:
        InvalidRenameSpecError: If ``spec`` fails :func:`validate_spec`
    """
    validate_spec(spec)
    names: list[str] = []
    for index, file in enumerate(files):
        stem, ext = split_name(Path(file).name)
        names.append(join_name(_new_stem(stem, spec, index), ext))
    return names


def plan(files: Sequence[str | Path], spec: RenameSpec) -> RenamePlan:
    """Pair a preview with the files it was computed for."""
    return RenamePlan(files=[Path(f) for f in files], names=preview(files, spec))


def find_collisions(
    sources: Sequence[Path], names: Sequence[str]
) -> dict[str, str]:
    """Return destination name -> reason for every colliding rename.

    A destination collides when another batch entry targets the same path,
    or when it exists on disk and is not the source itself (a case-only
    rename on a case-insensitive filesystem sees its own source).
    """
    collisions: dict[str, str] = {}
    claimed: dict[Path, Path] = {}

    for source, name in zip(sources, names, strict=True):
        destination = source.parent / name
        if destination == source:
            continue
        if destination in claimed:
            collisions[name] = f"also targeted by '{claimed[destination].name}'"
            continue
        claimed[destination] = source
        if path_exists(destination) and not same_entry(destination, source):
            collisions[name] = "destination already exists"

    return collisions


def commit(
    core: "FileManagerCore",
    files: Sequence[str | Path],
    names: Sequence[str],
    on_progress: ProgressCallback | None = None,
) -> list[Path]:
    """Apply a preview by renaming each file in input order.

    Every name is validated and every destination is checked for collisions
    before the first rename. Renames then run sequentially through
    ``core.rename``.

    Args:
        core: File manager that owns the sandbox
        files: Files to rename, in preview order
        names: New names from :func:`preview`, index-aligned with ``files``
        on_progress: Optional callback receiving the fraction of files done

    Returns:
        Final path of each file, index-aligned with ``files``

    Raises:
        InvalidRenameSpecError: If lengths differ, a file is listed twice, or
            a proposed name is not a valid file name
        BatchRenameConflictError: If any destination collides; nothing is
            renamed
        PartialRenameError: If a rename fails after earlier ones succeeded
    """
    if len(files) != len(names):
        raise InvalidRenameSpecError("files and names must have the same length")

    for name in names:
        try:
            validate_name(name)
        except InvalidNameError as e:
            raise InvalidRenameSpecError(f"proposed name {name!r}: {e.reason}") from e

    sources = [core.locate(f) for f in files]
    if len(set(sources)) != len(sources):
        raise InvalidRenameSpecError("a file is listed more than once")
    for source in sources:
        # raises FileOperationError before anything is renamed
        core.file_info(source)

    collisions = find_collisions(sources, names)
    if collisions:
        logger.warning("rename.batch.conflict", collisions=len(collisions))
        raise BatchRenameConflictError(collisions)

    reporter = ProgressReporter(on_progress)
    applied: list[tuple[Path, Path]] = []
    results: list[Path] = []
    total = len(sources)

    for index, (source, name) in enumerate(zip(sources, names, strict=True)):
        try:
            result = core.rename(source, name)
        except PortalFilesError as e:
            logger.error(
                "rename.batch.partial",
                applied=len(applied),
                failed_at=index,
                error=str(e),
            )
            raise PartialRenameError(len(applied), index, applied, str(e)) from e

        target = result.path if result.path is not None else source
        if target != source:
            applied.append((source, target))
        results.append(target)
        reporter.update_ratio(index + 1, total)

    reporter.finish()
    logger.info("rename.batch.done", renamed=len(applied), total=total)
    return results
