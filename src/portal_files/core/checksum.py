"""Single-pass multi-algorithm file checksums.

The file is opened once and read in fixed-size chunks; every chunk is fed to
all requested hash accumulators before the next chunk is read, so memory use
is bounded by the chunk size regardless of file size.
"""

import hashlib
from collections.abc import Iterable
from pathlib import Path

import structlog

from portal_files.core.constants import DEFAULT_CHUNK_SIZE
from portal_files.core.errors import FileOperationError
from portal_files.core.schemas import ChecksumSet, HashAlgorithm

logger = structlog.get_logger(__name__)

ALL_ALGORITHMS: frozenset[HashAlgorithm] = frozenset(HashAlgorithm)


def compute_all(
    path: Path,
    algorithms: Iterable[HashAlgorithm | str] = ALL_ALGORITHMS,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ChecksumSet:
    """Compute every requested digest of ``path`` in one read pass.

    Args:
        path: File to hash
        algorithms: Algorithms to compute (enum members or their names)
        chunk_size: Bytes read per iteration

    Returns:
        ChecksumSet with lowercase hex digests and the number of bytes read

    Raises:
        ValueError: If no algorithm is requested or chunk_size is not positive
        FileOperationError: On any read failure; no partial digests are returned
    """
    selected = {HashAlgorithm(algorithm) for algorithm in algorithms}
    if not selected:
        raise ValueError("at least one algorithm is required")
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    hashers = {algorithm: hashlib.new(algorithm.value) for algorithm in selected}
    size = 0

    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                size += len(chunk)
                for hasher in hashers.values():
                    hasher.update(chunk)
    except OSError as e:
        logger.warning("checksum.failed", path=str(path), error=str(e))
        raise FileOperationError.from_os_error("checksum", path, e) from e

    logger.debug(
        "checksum.done",
        path=str(path),
        size=size,
        algorithms=sorted(a.value for a in selected),
    )
    return ChecksumSet(
        path=path,
        size_bytes=size,
        digests={algorithm: h.hexdigest() for algorithm, h in hashers.items()},
    )
