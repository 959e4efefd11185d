"""Filesystem metadata snapshots used by retention decisions."""

from __future__ import annotations

import os
import stat as stat_module
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .errors import MetadataError


@dataclass(frozen=True, slots=True)
class Metadata:
    """Snapshot of the attributes retention rules care about.

    Attributes:
        mtime: Last modification time (UTC).
        size: Size in bytes.
        is_dir: Whether the path is a directory.
        is_file: Whether the path is a regular file.
    """

    mtime: datetime
    size: int
    is_dir: bool
    is_file: bool

    @classmethod
    def from_stat(cls, result: os.stat_result) -> Metadata:
        """Build a snapshot from an ``os.stat`` result."""
        return cls(
            mtime=datetime.fromtimestamp(result.st_mtime, tz=timezone.utc),
            size=result.st_size,
            is_dir=stat_module.S_ISDIR(result.st_mode),
            is_file=stat_module.S_ISREG(result.st_mode),
        )

    @classmethod
    def from_path(cls, path: Path, *, follow_symlinks: bool = True) -> Metadata:
        """Read a snapshot for ``path``.

        Args:
            path: Path to inspect.
            follow_symlinks: Whether to stat the symlink target.

        Returns:
            Metadata: Snapshot of the path's attributes.

        Raises:
            MetadataError: If the path cannot be stat'ed.
        """
        try:
            result = path.stat(follow_symlinks=follow_symlinks)
        except OSError as exc:
            raise MetadataError(path, f"unable to read metadata ({exc.strerror or exc})") from exc
        return cls.from_stat(result)

    def age(self, now: datetime | None = None) -> timedelta:
        """Return how long ago the file was last modified."""
        reference = now or datetime.now(timezone.utc)
        return reference - self.mtime


__all__ = ["Metadata"]
