"""Backup file discovery."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from autoprune.rules import Metadata, MetadataError

from .models import CandidateFile


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


class DirectoryScanner:
    """Discover backup files stored directly inside a destination directory."""

    def __init__(self, *, include_hidden: bool = False, follow_symlinks: bool = False) -> None:
        self.include_hidden = include_hidden
        self.follow_symlinks = follow_symlinks

    def scan(self, root: Path) -> Iterator[CandidateFile]:
        """Yield regular files under ``root`` respecting configured filters."""
        root = root.expanduser()
        if not root.is_dir():
            return

        for path in sorted(root.iterdir()):
            if not self.include_hidden and _is_hidden(path):
                continue
            if path.is_symlink() and not self.follow_symlinks:
                continue
            try:
                metadata = Metadata.from_path(path, follow_symlinks=self.follow_symlinks)
            except MetadataError:
                continue
            if not metadata.is_file:
                continue
            yield CandidateFile(path=path, metadata=metadata)
