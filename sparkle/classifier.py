"""File type, size and age classification."""
from __future__ import annotations

import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Mapping, NamedTuple

from .models import AgeCategory, FileType, SizeCategory

LOGGER_NAME = "sparkle.classifier"

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

SNIFF_WINDOW = 512


class _Signature(NamedTuple):
    offset: int
    magic: bytes
    file_type: FileType


_EXTENSION_TYPES: Mapping[str, FileType] = {
    **{
        ext: FileType.CODE
        for ext in (
            "java", "rs", "rb", "ex", "exs", "go", "js", "mjs", "ts", "py",
            "c", "h", "cc", "cpp", "hpp", "cs", "kt", "swift", "scala",
            "php", "pl", "lua", "sh", "bash", "zsh",
        )
    },
    "md": FileType.DOCUMENT,
    "yml": FileType.CONFIGURATION,
    "yaml": FileType.CONFIGURATION,
    "toml": FileType.CONFIGURATION,
    "txt": FileType.TEXT,
}

_MIME_TYPES: Mapping[str, FileType] = {
    "application/pdf": FileType.DOCUMENT,
    "application/msword": FileType.DOCUMENT,
    "application/rtf": FileType.DOCUMENT,
    "application/vnd.oasis.opendocument.text": FileType.DOCUMENT,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": FileType.DOCUMENT,
    "text/plain": FileType.TEXT,
    "application/javascript": FileType.CODE,
    "text/javascript": FileType.CODE,
    "text/x-python": FileType.CODE,
    "application/x-sh": FileType.CODE,
    "application/x-csh": FileType.CODE,
    "text/x-c": FileType.CODE,
    "application/zip": FileType.ARCHIVE,
    "application/gzip": FileType.ARCHIVE,
    "application/x-gzip": FileType.ARCHIVE,
    "application/x-tar": FileType.ARCHIVE,
    "application/x-bzip2": FileType.ARCHIVE,
    "application/x-xz": FileType.ARCHIVE,
    "application/x-7z-compressed": FileType.ARCHIVE,
    "application/vnd.rar": FileType.ARCHIVE,
    "application/x-rar-compressed": FileType.ARCHIVE,
}

_MIME_FAMILIES: Mapping[str, FileType] = {
    "image/": FileType.IMAGE,
    "video/": FileType.VIDEO,
    "audio/": FileType.AUDIO,
}

_SIGNATURES: tuple[_Signature, ...] = (
    _Signature(0, b"%PDF-", FileType.DOCUMENT),
    _Signature(0, b"{\\rtf", FileType.DOCUMENT),
    _Signature(0, bytes.fromhex("d0cf11e0a1b11ae1"), FileType.DOCUMENT),
    _Signature(0, b"\x89PNG\r\n\x1a\n", FileType.IMAGE),
    _Signature(0, b"\xff\xd8\xff", FileType.IMAGE),
    _Signature(0, b"GIF87a", FileType.IMAGE),
    _Signature(0, b"GIF89a", FileType.IMAGE),
    _Signature(0, b"BM", FileType.IMAGE),
    _Signature(0, b"II*\x00", FileType.IMAGE),
    _Signature(0, b"MM\x00*", FileType.IMAGE),
    _Signature(8, b"WEBP", FileType.IMAGE),
    _Signature(0, b"PK\x03\x04", FileType.ARCHIVE),
    _Signature(0, b"PK\x05\x06", FileType.ARCHIVE),
    _Signature(0, b"\x1f\x8b", FileType.ARCHIVE),
    _Signature(0, b"BZh", FileType.ARCHIVE),
    _Signature(0, b"\xfd7zXZ\x00", FileType.ARCHIVE),
    _Signature(0, b"7z\xbc\xaf\x27\x1c", FileType.ARCHIVE),
    _Signature(0, b"Rar!\x1a\x07", FileType.ARCHIVE),
    _Signature(257, b"ustar", FileType.ARCHIVE),
)


def size_category(size: int) -> SizeCategory:
    """Map a byte count onto a :class:`SizeCategory`."""

    if size < KIB:
        return SizeCategory.TINY
    if size <= MIB:
        return SizeCategory.SMALL
    if size <= 100 * MIB:
        return SizeCategory.MEDIUM
    if size <= GIB:
        return SizeCategory.LARGE
    return SizeCategory.HUGE


def age_in_days(modified: datetime, now: datetime) -> int:
    """Whole days elapsed since *modified*; never negative."""

    return max((now - modified).days, 0)


def age_category(modified: datetime, now: datetime) -> AgeCategory:
    days = age_in_days(modified, now)
    if days == 0:
        return AgeCategory.RECENT
    if days <= 7:
        return AgeCategory.WEEK
    if days <= 30:
        return AgeCategory.MONTH
    if days <= 365:
        return AgeCategory.YEAR
    return AgeCategory.OLD


class FileClassifier:
    """Resolve a :class:`FileType` for a path.

    Stages run in order and the first one that yields a type wins:
    extension table, MIME guess from the name, then a bounded read of the
    leading bytes matched against known format signatures.
    """

    def __init__(
        self,
        *,
        extension_types: Mapping[str, FileType] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.extension_types = dict(extension_types or _EXTENSION_TYPES)
        self.logger = logger or logging.getLogger(LOGGER_NAME)

    def classify(self, path: str | Path) -> FileType:
        path = Path(path)
        for stage in (self._classify_by_extension, self._classify_by_mime, self._classify_by_magic):
            file_type = stage(path)
            if file_type is not None:
                return file_type
        return FileType.UNKNOWN

    # ------------------------------------------------------------------
    # Individual classification stages
    def _classify_by_extension(self, path: Path) -> FileType | None:
        suffix = path.suffix.lower().lstrip(".")
        if not suffix:
            return None
        return self.extension_types.get(suffix)

    def _classify_by_mime(self, path: Path) -> FileType | None:
        mime_type, _ = mimetypes.guess_type(path.name)
        if not mime_type:
            return None
        if mime_type in _MIME_TYPES:
            return _MIME_TYPES[mime_type]
        for prefix, file_type in _MIME_FAMILIES.items():
            if mime_type.startswith(prefix):
                return file_type
        self._log_debug("Unmapped MIME type", f"{path.name}: {mime_type}")
        return None

    def _classify_by_magic(self, path: Path) -> FileType | None:
        try:
            with path.open("rb") as fh:
                header = fh.read(SNIFF_WINDOW)
        except OSError:
            self._log_debug("Unable to read file for magic", str(path))
            return None
        for signature in _SIGNATURES:
            end = signature.offset + len(signature.magic)
            if header[signature.offset:end] == signature.magic:
                return signature.file_type
        return None

    def _log_debug(self, message: str, detail: str) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.debug("%s: %s", message, detail)


_DEFAULT_CLASSIFIER = FileClassifier()


def classify(path: str | Path) -> FileType:
    """Classify *path* with the default tables."""

    return _DEFAULT_CLASSIFIER.classify(path)


__all__ = [
    "FileClassifier",
    "SNIFF_WINDOW",
    "age_category",
    "age_in_days",
    "classify",
    "size_category",
]
