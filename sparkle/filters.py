"""Filter evaluation against a file's metadata snapshot."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Sequence

from .classifier import age_in_days
from .models import FileMetadata
from .rules import AgeFilter, ExtensionFilter, Filter, NameContainsFilter, SizeFilter


def matches(
    path: str | Path,
    metadata: FileMetadata,
    filters: Sequence[Filter],
    *,
    now: datetime | None = None,
) -> bool:
    """Return True if any filter in *filters* matches the file.

    An empty filter list matches nothing. All filters see the same
    *metadata*; nothing is read from disk here.
    """

    path = Path(path)
    now = now or datetime.now()
    return any(_matches(item, path, metadata, now) for item in filters)


def _matches(item: Filter, path: Path, metadata: FileMetadata, now: datetime) -> bool:
    if isinstance(item, ExtensionFilter):
        suffix = path.suffix
        if not suffix:
            return False
        return suffix[1:].lower() == item.extension.lstrip(".").lower()
    if isinstance(item, NameContainsFilter):
        return item.substring in path.name
    if isinstance(item, SizeFilter):
        if item.gt is not None and not metadata.size > item.gt:
            return False
        if item.lt is not None and not metadata.size < item.lt:
            return False
        return True
    if isinstance(item, AgeFilter):
        if item.older_than_days is None:
            return False
        return age_in_days(metadata.modified, now) > item.older_than_days
    raise TypeError(f"Unsupported filter: {item!r}")


__all__ = ["matches"]
