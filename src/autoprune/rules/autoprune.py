"""Tiered auto-prune policy and the sweep that enforces it."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .errors import MetadataError, TagError
from .metadata import Metadata
from .models import Demotion, SweepResult
from .tag import Tag

LOGGER = logging.getLogger(__name__)

_EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


class AutoPrune(BaseModel):
    """How many tagged copies to retain per tier.

    Attributes:
        hours: Hourly-tagged copies to keep.
        days: Daily-tagged copies to keep.
        weeks: Weekly-tagged copies to keep.
        months: Monthly-tagged copies to keep.
        years: Yearly-tagged copies to keep.
        keep_latest: Minimum number of backups kept regardless of tiers.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    hours: int = Field(default=0, ge=0)
    days: int = Field(default=14, ge=0)
    weeks: int = Field(default=0, ge=0)
    months: int = Field(default=0, ge=0)
    years: int = Field(default=0, ge=0)
    keep_latest: int = Field(default=5, ge=0)

    def limits(self, tag: Tag, now: datetime) -> tuple[datetime, int]:
        """Return the date and count thresholds for ``tag``.

        Args:
            tag: Tier to compute limits for; must not be ``Tag.NONE``.
            now: Reference time of the sweep.

        Returns:
            tuple[datetime, int]: Files older than the date are eligible for
            demotion once the tier holds more files than the count.
        """
        windows = {
            Tag.HOURLY: ({"hours": self.hours}, self.hours),
            Tag.DAILY: ({"days": self.days}, self.days),
            Tag.WEEKLY: ({"weeks": self.weeks}, self.weeks),
            Tag.MONTHLY: ({"days": self.months * 30}, self.months),
            Tag.YEARLY: ({"days": self.years * 365}, self.years),
        }
        if tag not in windows:
            raise ValueError(f"No retention limits for tag {tag.label}")
        window, count = windows[tag]
        try:
            return now - timedelta(**window), count
        except OverflowError:
            # The window reaches past the earliest representable date.
            return _EARLIEST, count

    @staticmethod
    def tag_map(files: Iterable[Path]) -> dict[Tag, list[Path]]:
        """Group ``files`` by every tier their names carry."""
        buckets: dict[Tag, list[Path]] = {tag: [] for tag in Tag}
        for path in files:
            tags, _ = Tag.get_tags(path.name)
            for tag in dict.fromkeys(tags):
                buckets[tag].append(path)
        return buckets

    @staticmethod
    def time_sorted(
        paths: Iterable[Path],
        snapshots: Mapping[Path, Metadata],
        *,
        now: datetime,
    ) -> list[tuple[Path, Metadata]]:
        """Pair paths with their snapshots, newest first.

        Paths without a snapshot are dropped. Equal ages fall back to the
        file name so repeated sweeps see the same order.
        """
        paired = [(path, snapshots[path]) for path in paths if path in snapshots]
        paired.sort(key=lambda item: (item[1].age(now), item[0].name))
        return paired

    async def sweep(
        self,
        files: Iterable[Path],
        *,
        dry_run: bool = False,
        now: datetime | None = None,
        known: Mapping[Path, Metadata] | None = None,
    ) -> SweepResult:
        """Strip tier tags from the oldest files of every over-full tier.

        Args:
            files: Candidate backup files.
            dry_run: When true, plan demotions without renaming anything.
            now: Reference time; defaults to the current time.
            known: Snapshots already gathered by the caller; other files are
                read from disk.

        Returns:
            SweepResult: Current file locations plus demotions and failures.
        """
        reference = now or datetime.now(timezone.utc)
        paths = list(dict.fromkeys(files))
        result = SweepResult(dry_run=dry_run)

        snapshots: dict[Path, Metadata] = {}
        for path in paths:
            if known is not None and path in known:
                snapshots[path] = known[path]
                continue
            try:
                snapshots[path] = await asyncio.to_thread(Metadata.from_path, path)
            except MetadataError as exc:
                LOGGER.debug("Skipping %s during sweep: %s", path, exc)
                result.skipped.append(path)

        buckets = {
            tag: self.time_sorted(members, snapshots, now=reference)
            for tag, members in self.tag_map(paths).items()
        }
        locations = {path: path for path in snapshots}

        for tag in Tag.real():
            ranked = buckets[tag]
            date_limit, count_limit = self.limits(tag, reference)
            remaining = len(ranked)
            if remaining > count_limit:
                LOGGER.info(
                    "Maximum backups exceeded for tag %s (%d > %d), removing oldest backups",
                    tag.label,
                    remaining,
                    count_limit,
                )

            while remaining > count_limit:
                original, metadata = ranked[remaining - 1]
                if metadata.mtime >= date_limit:
                    break
                remaining -= 1

                current = locations[original]
                if dry_run:
                    destination = tag.without_tag(current)
                else:
                    try:
                        destination = await asyncio.to_thread(tag.remove_tag, current)
                    except TagError as exc:
                        LOGGER.error("Failed to remove tag %s from %s: %s", tag.label, current, exc)
                        result.errors.append(str(exc))
                        continue

                locations[original] = destination
                result.demoted.append(Demotion(source=current, destination=destination, tag=tag))
                LOGGER.info("Removed tag %s from %s", tag.label, current)

        ordered = (path for members in buckets.values() for path, _ in members)
        result.files = list(dict.fromkeys(locations[path] for path in ordered))
        result.metadata = {locations[path]: snapshots[path] for path in snapshots}
        return result

    async def auto_remove(self, files: Iterable[Path], *, dry_run: bool = False) -> list[Path]:
        """Run a sweep and return the current locations of the swept files."""
        result = await self.sweep(files, dry_run=dry_run)
        return result.files

    async def remove_untagged(
        self,
        files: Iterable[Path],
        *,
        dry_run: bool = False,
    ) -> list[Path]:
        """Delete files that carry no tier tag.

        Deletion is permanent. Failures are logged and the batch continues.

        Returns:
            list[Path]: Files that were removed (or would be, during dry runs).
        """
        removed: list[Path] = []
        for path in dict.fromkeys(files):
            tags, _ = Tag.get_tags(path.name)
            if tags != [Tag.NONE]:
                continue
            if dry_run:
                removed.append(path)
                continue
            try:
                await asyncio.to_thread(path.unlink)
            except OSError as exc:
                LOGGER.error("Failed to remove untagged file %s: %s", path, exc)
                continue
            LOGGER.info("Removed untagged file %s", path)
            removed.append(path)
        return removed

    async def would_keep(
        self,
        existing_files: Sequence[Path],
        new_path: Path,
        new_metadata: Metadata,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Return whether a prospective file would survive this policy."""
        if len(existing_files) < self.keep_latest:
            return True
        if not Tag.applicable_tags(new_metadata, now):
            LOGGER.debug("%s qualifies for no retention tier", new_path)
            return False
        return True


__all__ = ["AutoPrune"]
