"""ZIP packing and unpacking with progress and cancellation.

Packing writes to a temporary sibling of the destination and renames it into
place only after every entry was written, so a failed or cancelled pack never
leaves a half-written archive behind. Unpacking validates every entry name
against the destination before writing anything, then applies the job's
conflict policy per colliding file.
"""

import os
import tempfile
import time
import zipfile
import zlib
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pyzipper
import structlog

from portal_files.core.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RENAME_ATTEMPTS,
)
from portal_files.core.errors import (
    ArchiveError,
    ConflictUnresolvedError,
    FileOperationError,
    OutsideRootError,
)
from portal_files.core.progress import (
    CancellationToken,
    ProgressCallback,
    ProgressReporter,
)
from portal_files.core.schemas import (
    ArchiveDirection,
    ArchiveEntryInfo,
    ArchiveJob,
    ConflictAction,
    ConflictPolicy,
)
from portal_files.fs.conflicts import path_exists, resolve_conflict
from portal_files.fs.fs_ops import remove_path
from portal_files.fs.paths import normalize_path, resolve_within
from portal_files.utils.debug import debug

logger = structlog.get_logger(__name__)

_BAD_ZIP_ERRORS: tuple[type[Exception], ...] = (
    zipfile.BadZipFile,
    pyzipper.BadZipFile,
    zlib.error,
    EOFError,
)


def _password_bytes(password: str | None) -> bytes | None:
    return password.encode("utf-8") if password else None


def _collect_pack_entries(
    paths: Sequence[Path], exclude: set[Path]
) -> list[tuple[Path, str, bool]]:
    """Return (source, arcname, is_directory) triples in archive order.

    Files are stored by name; directories recursively, relative to their
    parent so the directory name itself is preserved.
    """
    entries: list[tuple[Path, str, bool]] = []
    for path in paths:
        if not path_exists(path):
            raise FileNotFoundError(2, "No such file or directory", str(path))
        if not path.is_dir():
            entries.append((path, path.name, False))
            continue

        base = path.parent
        for dirpath, dirnames, filenames in os.walk(path):
            dirnames.sort()
            directory = Path(dirpath)
            entries.append((directory, directory.relative_to(base).as_posix() + "/", True))
            for filename in sorted(filenames):
                file_path = directory / filename
                if file_path in exclude:
                    continue
                entries.append((file_path, file_path.relative_to(base).as_posix(), False))
    return entries


class ArchiveEngine:
    """Packs paths into ZIP archives and unpacks them.

    The engine is stateless between calls and does not care which thread it
    runs on; progress callbacks are invoked on the calling thread.
    """

    def __init__(
        self,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_rename_attempts: int = DEFAULT_MAX_RENAME_ATTEMPTS,
    ) -> None:
        self.chunk_size = chunk_size
        self.max_rename_attempts = max_rename_attempts

    # ------------------------------------------------------------------
    # Pack
    # ------------------------------------------------------------------

    def pack(
        self,
        paths: Sequence[Path],
        destination: Path,
        on_progress: ProgressCallback | None = None,
        *,
        password: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ArchiveJob:
        """Create a single DEFLATE archive at ``destination`` from ``paths``.

        An existing ``destination`` is overwritten; callers that need a free
        name resolve it beforehand.

        Raises:
            ArchiveError: ``io_failure`` on read/write errors, ``cancelled``
                when ``cancel_token`` fires. The destination is untouched in
                both cases.
        """
        destination = normalize_path(destination)
        job = ArchiveJob(
            direction=ArchiveDirection.PACK,
            inputs=[normalize_path(p) for p in paths],
            target=destination,
        )
        log = logger.bind(job_id=job.job_id, direction="pack", target=str(destination))
        reporter = ProgressReporter(self._tracking(job, on_progress))

        try:
            entries = _collect_pack_entries(job.inputs, exclude={destination})
            total = sum(p.stat().st_size for p, _, is_dir in entries if not is_dir)
        except OSError as e:
            raise ArchiveError(ArchiveError.IO_FAILURE, destination, str(e)) from e

        log.info("archive.pack.start", entries=len(entries), total_bytes=total)

        try:
            fd, temp_name = tempfile.mkstemp(
                dir=destination.parent, prefix=f".{destination.name}.", suffix=".part"
            )
            os.close(fd)
        except OSError as e:
            raise ArchiveError(ArchiveError.IO_FAILURE, destination, str(e)) from e
        temp_path = Path(temp_name)

        try:
            with self._open_for_write(temp_path, password) as zf:
                done = 0
                for source, arcname, is_dir in entries:
                    if cancel_token is not None and cancel_token.cancelled:
                        raise ArchiveError(
                            ArchiveError.CANCELLED, destination, "pack cancelled"
                        )
                    zf.write(source, arcname, compress_type=zipfile.ZIP_DEFLATED)
                    if not is_dir:
                        done += source.stat().st_size
                        reporter.update_ratio(done, total)
            os.replace(temp_path, destination)
        except ArchiveError:
            self._discard(temp_path)
            log.warning("archive.pack.cancelled")
            raise
        except OSError as e:
            self._discard(temp_path)
            log.error("archive.pack.failed", error=str(e))
            raise ArchiveError(ArchiveError.IO_FAILURE, destination, str(e)) from e

        job.written = [destination]
        reporter.finish()
        log.info("archive.pack.done", entries=len(entries))
        return job

    # ------------------------------------------------------------------
    # Unpack
    # ------------------------------------------------------------------

    def unpack(
        self,
        archive: Path,
        destination: Path,
        policy: ConflictPolicy = ConflictPolicy.REPLACE,
        on_progress: ProgressCallback | None = None,
        *,
        password: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ArchiveJob:
        """Extract every entry of ``archive`` below ``destination``.

        Colliding files follow ``policy``: REPLACE overwrites, SKIP keeps the
        existing file, RENAME writes a ``"name N.ext"`` sibling. Directories
        are merged. The source archive is never deleted here.

        Raises:
            ArchiveError: ``invalid_format`` for corrupt archives or entries
                escaping ``destination``; ``bad_password`` for missing or
                wrong passwords; ``io_failure`` for write errors;
                ``cancelled`` when ``cancel_token`` fires. ``written`` on the
                error lists the files completed before the failure.
        """
        if policy is ConflictPolicy.FAIL:
            raise ValueError("unpack requires a rename, replace or skip policy")

        archive = normalize_path(archive)
        destination = normalize_path(destination)
        job = ArchiveJob(
            direction=ArchiveDirection.UNPACK,
            inputs=[archive],
            target=destination,
            policy=policy,
        )
        log = logger.bind(
            job_id=job.job_id, direction="unpack", archive=str(archive), policy=policy.value
        )
        reporter = ProgressReporter(self._tracking(job, on_progress))

        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveError(ArchiveError.IO_FAILURE, archive, str(e)) from e

        with self._open_for_read(archive, password) as zf:
            members = zf.infolist()
            targets = self._plan_targets(archive, destination, members)
            total = sum(m.file_size for m in members if not m.is_dir())
            log.info("archive.unpack.start", entries=len(members), total_bytes=total)

            done = 0
            for member, target in zip(members, targets, strict=True):
                self._check_cancel(cancel_token, archive, job)
                if member.is_dir():
                    self._make_dir(target, archive, job)
                    continue

                written = self._extract_file(
                    zf, member, target, policy, archive, job, cancel_token, reporter, done, total
                )
                done += member.file_size
                reporter.update_ratio(done, total)
                if written is None:
                    job.skipped.append(target)
                else:
                    job.written.append(written)

        reporter.finish()
        log.info(
            "archive.unpack.done", written=len(job.written), skipped=len(job.skipped)
        )
        return job

    def _plan_targets(
        self, archive: Path, destination: Path, members: list[Any]
    ) -> list[Path]:
        targets = []
        for member in members:
            try:
                targets.append(resolve_within(destination, member.filename))
            except OutsideRootError as e:
                raise ArchiveError(
                    ArchiveError.INVALID_FORMAT,
                    archive,
                    f"entry '{member.filename}' escapes the destination",
                ) from e
            if targets[-1] == destination and not member.is_dir():
                raise ArchiveError(
                    ArchiveError.INVALID_FORMAT,
                    archive,
                    f"entry '{member.filename}' has no file name",
                )
        return targets

    def _make_dir(self, target: Path, archive: Path, job: ArchiveJob) -> None:
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ArchiveError(
                ArchiveError.IO_FAILURE, archive, str(e), written=job.written
            ) from e

    def _extract_file(
        self,
        zf: Any,
        member: Any,
        target: Path,
        policy: ConflictPolicy,
        archive: Path,
        job: ArchiveJob,
        cancel_token: CancellationToken | None,
        reporter: ProgressReporter,
        done: int,
        total: int,
    ) -> Path | None:
        """Write one member, returning its final path or None when skipped."""
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            decision = resolve_conflict(
                target, policy=policy, max_attempts=self.max_rename_attempts
            )
            if decision.action is ConflictAction.SKIP or decision.path is None:
                return None
            final = decision.path
            if decision.action is ConflictAction.REPLACE and final.is_dir():
                remove_path(final)
            mode = "wb" if decision.action is ConflictAction.REPLACE else "xb"
        except (OSError, FileOperationError, ConflictUnresolvedError) as e:
            raise ArchiveError(
                ArchiveError.IO_FAILURE, archive, str(e), written=job.written
            ) from e

        created = False
        try:
            with zf.open(member) as source:
                with open(final, mode) as sink:
                    created = True
                    copied = 0
                    for chunk in iter(lambda: source.read(self.chunk_size), b""):
                        self._check_cancel(cancel_token, archive, job, partial=final)
                        sink.write(chunk)
                        copied += len(chunk)
                        reporter.update_ratio(done + copied, total)
        except ArchiveError:
            self._discard_created(final, created)
            raise
        except RuntimeError as e:
            # zipfile signals missing/wrong passwords with RuntimeError
            self._discard_created(final, created)
            raise ArchiveError(
                ArchiveError.BAD_PASSWORD, archive, str(e), written=job.written
            ) from e
        except NotImplementedError as e:
            self._discard_created(final, created)
            raise ArchiveError(
                ArchiveError.INVALID_FORMAT, archive, str(e), written=job.written
            ) from e
        except _BAD_ZIP_ERRORS as e:
            self._discard_created(final, created)
            raise ArchiveError(
                ArchiveError.INVALID_FORMAT, archive, str(e), written=job.written
            ) from e
        except OSError as e:
            self._discard_created(final, created)
            raise ArchiveError(
                ArchiveError.IO_FAILURE, archive, str(e), written=job.written
            ) from e

        self._restore_mtime(final, member)
        return final

    # ------------------------------------------------------------------
    # Inspect
    # ------------------------------------------------------------------

    def inspect(self, archive: Path) -> list[ArchiveEntryInfo]:
        """List the entries of ``archive`` without extracting anything.

        Raises:
            ArchiveError: ``invalid_format`` or ``io_failure``
        """
        archive = normalize_path(archive)
        with self._open_for_read(archive, None) as zf:
            return [
                ArchiveEntryInfo(
                    name=info.filename,
                    size_bytes=info.file_size,
                    compressed_bytes=info.compress_size,
                    is_directory=info.is_dir(),
                    encrypted=bool(info.flag_bits & 0x1),
                )
                for info in zf.infolist()
            ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _tracking(
        job: ArchiveJob, on_progress: ProgressCallback | None
    ) -> ProgressCallback:
        def record(fraction: float) -> None:
            job.progress = fraction
            if on_progress is not None:
                on_progress(fraction)

        return record

    @staticmethod
    def _open_for_write(path: Path, password: str | None) -> Any:
        pwd = _password_bytes(password)
        if pwd is None:
            return zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED)
        zf = pyzipper.AESZipFile(
            path, "w", compression=pyzipper.ZIP_DEFLATED, encryption=pyzipper.WZ_AES
        )
        zf.setpassword(pwd)
        return zf

    @staticmethod
    def _open_for_read(archive: Path, password: str | None) -> Any:
        """Open an archive for reading; AESZipFile also reads plain and ZipCrypto."""
        try:
            zf = pyzipper.AESZipFile(archive, "r")
        except _BAD_ZIP_ERRORS as e:
            raise ArchiveError(ArchiveError.INVALID_FORMAT, archive, str(e)) from e
        except OSError as e:
            raise ArchiveError(ArchiveError.IO_FAILURE, archive, str(e)) from e

        pwd = _password_bytes(password)
        if pwd is not None:
            zf.setpassword(pwd)
        return zf

    @staticmethod
    def _check_cancel(
        cancel_token: CancellationToken | None,
        archive: Path,
        job: ArchiveJob,
        partial: Path | None = None,
    ) -> None:
        if cancel_token is None or not cancel_token.cancelled:
            return
        reason = "unpack cancelled"
        if partial is not None:
            reason += f"; incomplete '{partial.name}' was removed"
        raise ArchiveError(ArchiveError.CANCELLED, archive, reason, written=job.written)

    @staticmethod
    def _restore_mtime(path: Path, member: Any) -> None:
        try:
            mtime = time.mktime(member.date_time + (0, 0, -1))
            os.utime(path, (mtime, mtime))
        except (OverflowError, ValueError, OSError) as e:
            debug(f"Could not restore mtime of {path}: {e}")

    @staticmethod
    def _discard(path: Path) -> None:
        path.unlink(missing_ok=True)

    @classmethod
    def _discard_created(cls, path: Path, created: bool) -> None:
        if created:
            cls._discard(path)
