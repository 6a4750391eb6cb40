"""Pydantic schemas for the file-management core.

These schemas define the values exchanged between the core and its callers:
- DirectoryEntry: One listed filesystem object
- ChecksumSet: Digests produced by one read pass
- SearchCriteria: Recursive search predicates
- ConflictDecision: Outcome of destination conflict resolution
- ArchiveJob: A pack/unpack request and its progress
- RenameSpec: Batch rename strategies

All schemas use Pydantic v2 for validation and serialization.
"""

import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal

from pydantic import (
    BaseModel,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from portal_files.core.constants import (
    DEFAULT_CATEGORY,
    SEQUENCE_PAD_WIDTH,
)


class HashAlgorithm(str, Enum):
    """Digest algorithms supported by the checksum engine.

    MD5 and SHA-1 are kept for display/compatibility only.
    """

    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA512 = "sha512"


class ConflictPolicy(str, Enum):
    """How to handle a destination that already exists.

    Attributes:
        RENAME: Pick a free "name N.ext" sibling
        REPLACE: Overwrite the existing destination
        SKIP: Leave the existing destination untouched
        FAIL: Surface a ConflictError (explicit renames/moves)
    """

    RENAME = "rename"
    REPLACE = "replace"
    SKIP = "skip"
    FAIL = "fail"


class ConflictAction(str, Enum):
    """Decision returned by the conflict resolver."""

    PROCEED = "proceed"
    RENAME = "rename"
    REPLACE = "replace"
    SKIP = "skip"
    CONFLICT = "conflict"


class SortKey(str, Enum):
    """Listing sort keys; directories always come first."""

    NAME = "name"
    DATE = "date"
    SIZE = "size"
    TYPE = "type"


class ConflictDecision(BaseModel):
    """Outcome of resolving a desired destination.

    Attributes:
        action: What the caller should do
        path: Final destination (None for SKIP)
        desired: The path originally asked for
    """

    action: ConflictAction
    path: Path | None
    desired: Path

    model_config = {"frozen": True}


class DirectoryEntry(BaseModel):
    """One filesystem object in a listing.

    Identity is a fresh token per listing call; it is not derived from the
    path.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    absolute_path: Path
    is_directory: bool
    size_bytes: int | None = None
    modified_at: datetime | None = None
    custom_icon_ref: str | None = None
    category: str = DEFAULT_CATEGORY

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def directories_have_no_size(self) -> "DirectoryEntry":
        if self.is_directory and self.size_bytes is not None:
            raise ValueError("directories do not carry size_bytes")
        return self

    @field_serializer("absolute_path")
    def serialize_path(self, value: Path) -> str:
        return str(value)


class ChecksumSet(BaseModel):
    """Digests for one file computed from a single read pass."""

    path: Path
    size_bytes: int
    digests: dict[HashAlgorithm, str]

    model_config = {"frozen": True}

    def __getitem__(self, algorithm: HashAlgorithm | str) -> str:
        return self.digests[HashAlgorithm(algorithm)]


class SearchCriteria(BaseModel):
    """Predicates for a recursive search.

    Size bounds are in bytes. ``extension`` is compared case-insensitively
    and may be given with or without its leading dot.
    """

    query: str
    case_sensitive: bool = False
    search_content: bool = False
    extension: str | None = None
    min_size: int | None = Field(default=None, ge=0)
    max_size: int | None = Field(default=None, ge=0)

    model_config = {"frozen": True}

    @field_validator("extension")
    @classmethod
    def normalize_extension(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip().lstrip(".")
        return value.lower() or None

    @model_validator(mode="after")
    def validate_bounds(self) -> "SearchCriteria":
        if (
            self.min_size is not None
            and self.max_size is not None
            and self.max_size < self.min_size
        ):
            raise ValueError("max_size cannot be less than min_size")
        return self


class ArchiveDirection(str, Enum):
    PACK = "pack"
    UNPACK = "unpack"


class ArchiveJob(BaseModel):
    """A single pack or unpack request.

    Progress is only mutated by the engine's progress reporter.
    """

    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    direction: ArchiveDirection
    inputs: list[Path]
    target: Path
    policy: ConflictPolicy = ConflictPolicy.REPLACE
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    written: list[Path] = Field(default_factory=list)
    skipped: list[Path] = Field(default_factory=list)

    model_config = {"validate_assignment": True}


class ArchiveEntryInfo(BaseModel):
    """One entry of an archive as reported by the inspector."""

    name: str
    size_bytes: int
    compressed_bytes: int
    is_directory: bool
    encrypted: bool

    model_config = {"frozen": True}


class FindReplaceSpec(BaseModel):
    """Replace every occurrence of ``find`` in the stem."""

    mode: Literal["find_replace"] = "find_replace"
    find: str
    replace: str = ""

    model_config = {"frozen": True}


class SequentialSpec(BaseModel):
    """Rename to ``pattern`` with ``{n}`` replaced by a padded sequence number."""

    mode: Literal["sequential"] = "sequential"
    pattern: str
    start_number: int = Field(default=1, ge=0)
    pad_width: int = Field(default=SEQUENCE_PAD_WIDTH, ge=1)

    model_config = {"frozen": True}


class PrefixSuffixSpec(BaseModel):
    """Wrap the stem in ``prefix`` and ``suffix``."""

    mode: Literal["prefix_suffix"] = "prefix_suffix"
    prefix: str = ""
    suffix: str = ""

    model_config = {"frozen": True}


RenameSpec = Annotated[
    FindReplaceSpec | SequentialSpec | PrefixSuffixSpec,
    Field(discriminator="mode"),
]


class RenamePlan(BaseModel):
    """Preview paired with the files it was computed for."""

    files: list[Path]
    names: list[str]

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_lengths(self) -> "RenamePlan":
        if len(self.files) != len(self.names):
            raise ValueError("files and names must have the same length")
        return self


class OperationResult(BaseModel):
    """Result of a mutating operation plus the refreshed listing."""

    path: Path | None
    action: ConflictAction = ConflictAction.PROCEED
    entries: list[DirectoryEntry] = Field(default_factory=list)


class FileInfo(BaseModel):
    """Detailed metadata for one path."""

    name: str
    absolute_path: Path
    is_directory: bool
    is_symlink: bool
    size_bytes: int
    created_at: datetime | None = None
    modified_at: datetime | None = None
    accessed_at: datetime | None = None
    permissions: str
    category: str = DEFAULT_CATEGORY

    model_config = {"frozen": True}


class DiskUsageItem(BaseModel):
    name: str
    size_bytes: int
    is_directory: bool

    model_config = {"frozen": True}


class DiskUsage(BaseModel):
    """Recursive sizes of a directory's children, largest first."""

    path: Path
    total_bytes: int
    items: list[DiskUsageItem]

    model_config = {"frozen": True}
