"""Retention tiers and their filename encoding.

A file's tiers are stored as a prefix of its name, for example
``Hourly-Daily-Weekly-backup.tar``. The prefix is always written in tier
declaration order so parsing never needs to re-sort.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from functools import total_ordering
from pathlib import Path
from typing import Iterable

from .errors import TagError
from .metadata import Metadata

LOGGER = logging.getLogger(__name__)

SEPARATOR = "-"


@total_ordering
class Tag(Enum):
    """Retention tier a file belongs to.

    ``NONE`` marks the absence of a tier. It is returned by the parser for
    untagged names and is never written into a filename.
    """

    NONE = "None"
    HOURLY = "Hourly"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Tag):
            return NotImplemented
        return _ORDER[self] < _ORDER[other]

    @property
    def label(self) -> str:
        """Return the name written into filenames."""
        return self.value

    @classmethod
    def from_label(cls, text: str) -> Tag:
        """Return the tier matching ``text`` case-insensitively.

        Raises:
            ValueError: If ``text`` names no tier.
        """
        for tag in cls:
            if tag.value.lower() == text.lower():
                return tag
        raise ValueError(f"Unknown retention tag: {text!r}")

    @classmethod
    def real(cls) -> list[Tag]:
        """Return every tier except ``NONE`` in declaration order."""
        return [tag for tag in cls if tag is not cls.NONE]

    def duration(self) -> timedelta:
        """Return the maximum look-back window of the tier."""
        return _DURATIONS[self]

    def applicable(self, metadata: Metadata, now: datetime | None = None) -> bool:
        """Return whether a file with ``metadata`` is young enough for this tier."""
        if self is Tag.NONE:
            return False
        return metadata.age(now) < self.duration()

    @classmethod
    def applicable_tags(cls, metadata: Metadata, now: datetime | None = None) -> list[Tag]:
        """Return the tiers a file with ``metadata`` qualifies for, in order."""
        reference = now or datetime.now(timezone.utc)
        return [tag for tag in cls if tag.applicable(metadata, reference)]

    @classmethod
    def tag(cls, path: Path) -> Path:
        """Add every applicable tier to ``path`` and return its new location.

        All tiers are applied with a single rename, so a failure leaves the
        file under its original name.

        Raises:
            MetadataError: If the file's metadata cannot be read.
            TagError: If the rename fails or the destination already exists.
        """
        metadata = Metadata.from_path(path)
        applicable = cls.applicable_tags(metadata)
        if not applicable or not path.name:
            return path

        tags, bare = cls.get_tags(path.name)
        destination = path.with_name(cls.encode([*tags, *applicable], bare))
        if destination == path:
            return path

        _rename(path, destination)
        LOGGER.debug(
            "Tagged %s as %s",
            path.name,
            ", ".join(tag.label for tag in applicable),
        )
        return destination

    @staticmethod
    def get_tags(name: str) -> tuple[list[Tag], str]:
        """Split a filename into its tiers and the bare name.

        Examples:
            >>> Tag.get_tags("hourly-daily-file.txt")
            ([<Tag.HOURLY: 'Hourly'>, <Tag.DAILY: 'Daily'>], 'file.txt')
            >>> Tag.get_tags("file.txt")
            ([<Tag.NONE: 'None'>], 'file.txt')
        """
        match = _PREFIX_PATTERN.match(name)
        if match is None:
            return [Tag.NONE], name
        prefix = match.group(0)
        tags = [Tag.from_label(part) for part in prefix.split(SEPARATOR) if part]
        return tags, name[len(prefix) :]

    @staticmethod
    def encode(tags: Iterable[Tag], name: str) -> str:
        """Return ``name`` prefixed with ``tags`` in canonical order."""
        canonical = sorted({tag for tag in tags if tag is not Tag.NONE})
        if not canonical:
            return name
        prefix = SEPARATOR.join(tag.label for tag in canonical)
        return f"{prefix}{SEPARATOR}{name}"

    def with_tag(self, path: Path) -> Path:
        """Return the path ``path`` would have after adding this tier."""
        tags, bare = self.get_tags(path.name)
        if self in tags:
            return path
        return path.with_name(self.encode([*tags, self], bare))

    def without_tag(self, path: Path) -> Path:
        """Return the path ``path`` would have after removing this tier."""
        tags, bare = self.get_tags(path.name)
        if self not in tags:
            return path
        return path.with_name(self.encode([tag for tag in tags if tag is not self], bare))

    def add_tag(self, path: Path) -> Path:
        """Rename ``path`` so its prefix includes this tier.

        Adding a tier that is already present leaves the file untouched.

        Returns:
            Path: Location of the file after the rename.

        Raises:
            TagError: If the rename fails or the destination already exists.
        """
        if not path.name:
            LOGGER.error("Cannot tag %s: path has no file name", path)
            return path
        if self is Tag.NONE:
            LOGGER.warning("Refusing to write the %s tag into %s", self.label, path)
            return path

        destination = self.with_tag(path)
        if destination == path:
            LOGGER.warning("%s is already tagged %s", path, self.label)
            return path

        _rename(path, destination)
        LOGGER.debug("Added tag %s: %s -> %s", self.label, path.name, destination.name)
        return destination

    def remove_tag(self, path: Path) -> Path:
        """Rename ``path`` so its prefix no longer includes this tier.

        Removing a tier that is not present leaves the file untouched.

        Raises:
            TagError: If the rename fails or the destination already exists.
        """
        if not path.name:
            LOGGER.error("Cannot untag %s: path has no file name", path)
            return path

        destination = self.without_tag(path)
        if destination == path:
            return path

        _rename(path, destination)
        LOGGER.debug("Removed tag %s: %s -> %s", self.label, path.name, destination.name)
        return destination


_ORDER = {tag: index for index, tag in enumerate(Tag)}

_DURATIONS = {
    Tag.NONE: timedelta(0),
    Tag.HOURLY: timedelta(hours=1),
    Tag.DAILY: timedelta(days=1),
    Tag.WEEKLY: timedelta(weeks=1),
    Tag.MONTHLY: timedelta(days=30),
    Tag.YEARLY: timedelta(days=365),
}

_PREFIX_PATTERN = re.compile(
    r"^(?:(?:" + "|".join(re.escape(tag.label) for tag in Tag.real()) + r")-)+(?=.)",
    re.IGNORECASE,
)


def _rename(source: Path, destination: Path) -> None:
    if destination.exists():
        raise TagError(source, f"destination already exists: {destination}")
    try:
        source.rename(destination)
    except OSError as exc:
        raise TagError(source, f"rename to {destination.name} failed ({exc.strerror or exc})") from exc


__all__ = ["Tag", "SEPARATOR"]
