"""Build :class:`~sparkle.models.FileMetadata` snapshots from the filesystem."""
from __future__ import annotations

import os
import stat
from datetime import datetime
from pathlib import Path

from .classifier import FileClassifier, age_category, classify, size_category
from .models import FileMetadata


class FileMetadataError(Exception):
    """Base class for failures while reading a file's metadata."""


class NoMetadataError(FileMetadataError):
    def __init__(self, path: str | Path) -> None:
        super().__init__(f"Can't access file metadata: {path}")
        self.path = Path(path)


class InvalidInputError(FileMetadataError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid input: {message}")


class NoModifiedTimeError(FileMetadataError):
    def __init__(self, message: str) -> None:
        super().__init__(f"Could not get mtime for the file: {message}")


class MetadataIOError(FileMetadataError):
    def __init__(self, cause: OSError) -> None:
        super().__init__(f"IO error: {cause}")
        self.cause = cause


def build_metadata(
    path: str | Path,
    *,
    now: datetime | None = None,
    classifier: FileClassifier | None = None,
) -> FileMetadata:
    """Read *path* from disk and return an immutable metadata snapshot.

    Raises a :class:`FileMetadataError` subclass when the path cannot be
    stat'ed or has no usable modification time. Creation and access times are
    best-effort and end up as ``None`` when unavailable.
    """

    if path is None or str(path) == "":
        raise InvalidInputError("empty path")
    path = Path(path)

    try:
        stat_result = os.stat(path)
    except FileNotFoundError as exc:
        if os.path.lexists(path):
            raise NoMetadataError(path) from exc
        raise MetadataIOError(exc) from exc
    except OSError as exc:
        raise MetadataIOError(exc) from exc

    try:
        modified = datetime.fromtimestamp(stat_result.st_mtime)
    except (OverflowError, OSError, ValueError) as exc:
        raise NoModifiedTimeError(f"{path}: {exc}") from exc

    file_type = classifier.classify(path) if classifier else classify(path)
    return FileMetadata(
        size=stat_result.st_size,
        modified=modified,
        created=_safe_datetime(getattr(stat_result, "st_birthtime", None)),
        accessed=_safe_datetime(stat_result.st_atime),
        permissions=stat.S_IMODE(stat_result.st_mode),
        is_file=stat.S_ISREG(stat_result.st_mode),
        is_dir=stat.S_ISDIR(stat_result.st_mode),
        is_symlink=path.is_symlink(),
        extended_attributes={},
        size_category=size_category(stat_result.st_size),
        age_category=age_category(modified, now or datetime.now()),
        file_type=file_type,
    )


def _safe_datetime(timestamp: float | None) -> datetime | None:
    if timestamp is None:
        return None
    try:
        return datetime.fromtimestamp(timestamp)
    except (OverflowError, OSError, ValueError):
        return None


__all__ = [
    "FileMetadataError",
    "InvalidInputError",
    "MetadataIOError",
    "NoMetadataError",
    "NoModifiedTimeError",
    "build_metadata",
]
