"""Data models for destination cleanup runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from autoprune.rules import Metadata, SweepResult


@dataclass(frozen=True, slots=True)
class CandidateFile:
    """A backup file discovered in a destination directory.

    Attributes:
        path: Location of the file.
        metadata: Snapshot taken during discovery.
    """

    path: Path
    metadata: Metadata


@dataclass(slots=True)
class CleanupResult:
    """Outcome of a cleanup run over one destination.

    Attributes:
        root: Destination directory that was cleaned.
        dry_run: Whether filesystem changes were only planned.
        tagged: Untagged files that received tier tags, as (before, after).
        sweep: Result of the auto-prune sweep.
        removed: Untagged files deleted after the sweep.
        protected: Untagged files kept by the minimum-keep floor.
        errors: Failure messages gathered across every stage.
    """

    root: Path
    dry_run: bool
    tagged: list[tuple[Path, Path]] = field(default_factory=list)
    sweep: SweepResult = field(default_factory=SweepResult)
    removed: list[Path] = field(default_factory=list)
    protected: list[Path] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        """Return summary metrics for the run."""
        return {
            "tagged": len(self.tagged),
            "demoted": len(self.sweep.demoted),
            "removed": len(self.removed),
            "protected": len(self.protected),
            "skipped": len(self.sweep.skipped),
            "errors": len(self.errors),
        }

    @property
    def json_payload(self) -> dict[str, Any]:
        """Return a JSON-ready description of the run."""
        return {
            "context": {"root": self.root.as_posix(), "dry_run": self.dry_run},
            "counts": self.counts,
            "tagged": [
                {"source": source.as_posix(), "destination": destination.as_posix()}
                for source, destination in self.tagged
            ],
            "demoted": [
                {
                    "source": demotion.source.as_posix(),
                    "destination": demotion.destination.as_posix(),
                    "tag": demotion.tag.label,
                }
                for demotion in self.sweep.demoted
            ],
            "removed": [path.as_posix() for path in self.removed],
            "protected": [path.as_posix() for path in self.protected],
            "files": [path.as_posix() for path in self.sweep.files],
            "errors": list(self.errors),
        }


__all__ = ["CandidateFile", "CleanupResult"]
