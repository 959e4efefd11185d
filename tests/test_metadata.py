"""Tests for filesystem metadata snapshots."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from autoprune.rules import Metadata, MetadataError


def test_from_path_reads_file_attributes(tmp_path: Path) -> None:
    path = tmp_path / "dump.sql"
    path.write_bytes(b"x" * 42)
    stamp = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    os.utime(path, (stamp.timestamp(), stamp.timestamp()))

    metadata = Metadata.from_path(path)

    assert metadata.mtime == stamp
    assert metadata.size == 42
    assert metadata.is_file and not metadata.is_dir


def test_from_path_on_directory(tmp_path: Path) -> None:
    metadata = Metadata.from_path(tmp_path)

    assert metadata.is_dir and not metadata.is_file


def test_from_path_missing_raises(tmp_path: Path) -> None:
    with pytest.raises(MetadataError) as excinfo:
        Metadata.from_path(tmp_path / "gone.sql")

    assert excinfo.value.path == tmp_path / "gone.sql"


def test_age_is_relative_to_reference() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    metadata = Metadata(mtime=now - timedelta(hours=3), size=0, is_dir=False, is_file=True)

    assert metadata.age(now) == timedelta(hours=3)
