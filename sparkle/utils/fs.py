"""Filesystem helpers used by sparkle."""
from __future__ import annotations

import hashlib
from pathlib import Path


def unique_path(base: Path) -> Path:
    """Return *base*, or the first ``<stem>_<n><suffix>`` sibling that does not exist."""

    candidate = base
    counter = 1
    while candidate.exists():
        candidate = candidate.with_name(f"{base.stem}_{counter}{base.suffix}")
        counter += 1
    return candidate


def timestamped_name(name: str, suffix: str, millis: int) -> str:
    """Insert *millis* between the stem of *name* and *suffix*.

    ``timestamped_name("report.txt", ".md", 1700000000000)`` gives
    ``report_1700000000000.md``.
    """

    return f"{Path(name).stem}_{millis}{suffix}"


def sha256_digest(file_path: Path) -> str:
    """Calculate the SHA256 hash of a file."""

    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(8192):
            sha256.update(chunk)
    return sha256.hexdigest()


__all__ = ["sha256_digest", "timestamped_name", "unique_path"]
