"""Core dataclasses shared across sparkle modules."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path


class SizeCategory(Enum):
    """Size buckets, ordered from smallest to largest."""

    TINY = 0  # < 1 KiB
    SMALL = 1  # 1 KiB - 1 MiB
    MEDIUM = 2  # 1 MiB - 100 MiB
    LARGE = 3  # 100 MiB - 1 GiB
    HUGE = 4  # > 1 GiB

    def __lt__(self, other: SizeCategory) -> bool:
        if not isinstance(other, SizeCategory):
            return NotImplemented
        return self.value < other.value


class AgeCategory(Enum):
    """Age buckets based on whole days since the last modification."""

    RECENT = 0  # same day
    WEEK = 1  # 1-7 days
    MONTH = 2  # 8-30 days
    YEAR = 3  # 31-365 days
    OLD = 4  # > 1 year

    def __lt__(self, other: AgeCategory) -> bool:
        if not isinstance(other, AgeCategory):
            return NotImplemented
        return self.value < other.value


class FileType(str, Enum):
    """Coarse content type of a file."""

    DOCUMENT = "document"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    CODE = "code"
    CONFIGURATION = "configuration"
    TEXT = "text"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Snapshot of a file's attributes plus derived categories."""

    size: int
    modified: datetime
    permissions: int
    is_file: bool
    is_dir: bool
    is_symlink: bool
    size_category: SizeCategory
    age_category: AgeCategory
    file_type: FileType
    created: datetime | None = None
    accessed: datetime | None = None
    extended_attributes: dict[str, bytes] = field(default_factory=dict)

    def clone(self) -> FileMetadata:
        """Return an independent copy; the attribute mapping is not shared."""

        return replace(
            self,
            extended_attributes={
                name: bytes(value) for name, value in self.extended_attributes.items()
            },
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "size": self.size,
            "modified": self.modified.isoformat(),
            "created": self.created.isoformat() if self.created else None,
            "accessed": self.accessed.isoformat() if self.accessed else None,
            "permissions": oct(self.permissions),
            "is_file": self.is_file,
            "is_dir": self.is_dir,
            "is_symlink": self.is_symlink,
            "size_category": self.size_category.name.lower(),
            "age_category": self.age_category.name.lower(),
            "file_type": self.file_type.value,
        }


@dataclass(slots=True)
class MediaInfo:
    width: int | None = None
    height: int | None = None
    duration_seconds: float | None = None
    date_taken: datetime | None = None
    camera_make: str | None = None
    camera_model: str | None = None
    gps_coordinates: tuple[float, float] | None = None


@dataclass(slots=True)
class DocumentInfo:
    page_count: int | None = None
    word_count: int | None = None
    author: str | None = None
    title: str | None = None
    created_date: datetime | None = None


@dataclass(slots=True)
class ArchiveInfo:
    format: str
    file_count: int
    uncompressed_size: int
    compression_ratio: float


@dataclass(slots=True)
class ContentInfo:
    """Result of deep content analysis. Not produced by the crawler yet."""

    mime_type: str
    mime_confidence: float = 0.0
    media_info: MediaInfo | None = None
    document_info: DocumentInfo | None = None
    archive_info: ArchiveInfo | None = None
    text_encoding: str | None = None
    language: str | None = None
    hash_digest: str | None = None
    has_metadata: bool = False


@dataclass(slots=True)
class FileContext:
    """A file that matched a rule and went through all of its actions."""

    path: Path
    metadata: FileMetadata
    parent_dir: Path
    base_dir: Path
    content_info: ContentInfo | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "path": str(self.path),
            "parent_dir": str(self.parent_dir),
            "base_dir": str(self.base_dir),
            "metadata": self.metadata.to_dict(),
        }


@dataclass(slots=True)
class CrawlFailure:
    """A file or directory the crawler had to skip."""

    path: Path
    stage: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": str(self.path), "stage": self.stage, "message": self.message}


__all__ = [
    "AgeCategory",
    "ArchiveInfo",
    "ContentInfo",
    "CrawlFailure",
    "DocumentInfo",
    "FileContext",
    "FileMetadata",
    "FileType",
    "MediaInfo",
    "SizeCategory",
]
