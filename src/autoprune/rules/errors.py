"""Retention engine errors."""

from __future__ import annotations

from pathlib import Path


class PruneError(Exception):
    """Base exception for retention operations."""


class MetadataError(PruneError):
    """Raised when filesystem metadata for a path cannot be read."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class TagError(PruneError):
    """Raised when a tagged rename cannot be applied."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
