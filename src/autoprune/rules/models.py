"""Result models produced by retention sweeps."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .metadata import Metadata
from .tag import Tag


@dataclass(slots=True)
class Demotion:
    """A tier tag stripped from a file during a sweep.

    Attributes:
        source: File location before the tag was removed.
        destination: File location after the tag was removed.
        tag: Tier that was removed.
    """

    source: Path
    destination: Path
    tag: Tag


@dataclass(slots=True)
class SweepResult:
    """Outcome of a single sweep over a set of files.

    Attributes:
        files: Current locations of every swept file, deduplicated.
        metadata: Snapshots keyed by current location.
        demoted: Tags removed (or planned for removal during dry runs).
        skipped: Files excluded because their metadata could not be read.
        errors: Per-file failure messages.
        dry_run: Whether renames were only planned.
    """

    files: list[Path] = field(default_factory=list)
    metadata: dict[Path, Metadata] = field(default_factory=dict)
    demoted: list[Demotion] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False


__all__ = ["Demotion", "SweepResult"]
