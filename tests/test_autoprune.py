"""Tests for the auto-prune policy and sweep."""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

from autoprune.rules import AutoPrune, Metadata, Tag


def _backup(root: Path, name: str, age: timedelta = timedelta(0)) -> Path:
    """Create a backup file whose modification time lies ``age`` in the past."""
    path = root / name
    path.write_text("backup", encoding="utf-8")
    stamp = (datetime.now(timezone.utc) - age).timestamp()
    os.utime(path, (stamp, stamp))
    return path


def _names(paths: list[Path]) -> list[str]:
    return sorted(path.name for path in paths)


def test_defaults() -> None:
    policy = AutoPrune()

    assert (policy.hours, policy.days, policy.weeks, policy.months, policy.years) == (0, 14, 0, 0, 0)
    assert policy.keep_latest == 5


def test_counts_must_be_non_negative() -> None:
    with pytest.raises(ValidationError):
        AutoPrune(days=-1)


def test_policy_is_immutable() -> None:
    policy = AutoPrune()

    with pytest.raises(ValidationError):
        policy.days = 3  # type: ignore[misc]


def test_limits_per_tier() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    policy = AutoPrune(hours=2, days=3, weeks=4, months=5, years=6)

    assert policy.limits(Tag.HOURLY, now) == (now - timedelta(hours=2), 2)
    assert policy.limits(Tag.DAILY, now) == (now - timedelta(days=3), 3)
    assert policy.limits(Tag.WEEKLY, now) == (now - timedelta(weeks=4), 4)
    assert policy.limits(Tag.MONTHLY, now) == (now - timedelta(days=150), 5)
    assert policy.limits(Tag.YEARLY, now) == (now - timedelta(days=6 * 365), 6)
    with pytest.raises(ValueError):
        policy.limits(Tag.NONE, now)


def test_tag_map_places_files_in_every_bucket() -> None:
    both = Path("Hourly-Daily-db.sql")
    plain = Path("db.sql")

    buckets = AutoPrune.tag_map([both, plain])

    assert set(buckets) == set(Tag)
    assert buckets[Tag.HOURLY] == [both]
    assert buckets[Tag.DAILY] == [both]
    assert buckets[Tag.NONE] == [plain]
    assert buckets[Tag.WEEKLY] == []


def test_time_sorted_orders_newest_first() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)

    def snapshot(hours: int) -> Metadata:
        return Metadata(mtime=now - timedelta(hours=hours), size=0, is_dir=False, is_file=True)

    snapshots = {Path("a"): snapshot(5), Path("b"): snapshot(1), Path("c"): snapshot(3)}

    ranked = AutoPrune.time_sorted([Path("a"), Path("b"), Path("c"), Path("missing")], snapshots, now=now)

    assert [path.name for path, _ in ranked] == ["b", "c", "a"]


@pytest.mark.asyncio
async def test_sweep_demotes_only_the_file_past_the_limit(tmp_path: Path) -> None:
    old = _backup(tmp_path, "Hourly-old.txt", timedelta(hours=2))
    new = _backup(tmp_path, "Hourly-new.txt", timedelta(minutes=10))
    policy = AutoPrune(hours=1, days=0, weeks=0, months=0, keep_latest=0)

    result = await policy.sweep([old, new])

    assert [demotion.tag for demotion in result.demoted] == [Tag.HOURLY]
    assert result.demoted[0].source == old
    assert (tmp_path / "old.txt").exists()
    assert new.exists()
    assert _names(result.files) == ["Hourly-new.txt", "old.txt"]


@pytest.mark.asyncio
async def test_sweep_stops_at_first_file_inside_the_window(tmp_path: Path) -> None:
    files = [
        _backup(tmp_path, f"Hourly-{index}.txt", timedelta(minutes=10 * index))
        for index in range(1, 4)
    ]
    policy = AutoPrune(hours=1, days=0, keep_latest=0)

    result = await policy.sweep(files)

    assert result.demoted == []
    assert all(path.exists() for path in files)


@pytest.mark.asyncio
async def test_sweep_keeps_count_limit_newest_copies(tmp_path: Path) -> None:
    files = [
        _backup(tmp_path, f"Daily-{days}d.txt", timedelta(days=days)) for days in (3, 4, 5, 6)
    ]
    policy = AutoPrune(days=2, keep_latest=0)

    result = await policy.sweep(files)

    assert [demotion.source.name for demotion in result.demoted] == ["Daily-6d.txt", "Daily-5d.txt"]
    assert _names(result.files) == ["5d.txt", "6d.txt", "Daily-3d.txt", "Daily-4d.txt"]


@pytest.mark.asyncio
async def test_sweep_follows_renames_across_tiers(tmp_path: Path) -> None:
    path = _backup(tmp_path, "Hourly-Daily-db.sql", timedelta(hours=2))
    policy = AutoPrune(hours=0, days=0, keep_latest=0)

    result = await policy.sweep([path])

    assert [demotion.tag for demotion in result.demoted] == [Tag.HOURLY, Tag.DAILY]
    assert result.demoted[1].source.name == "Daily-db.sql"
    assert result.files == [tmp_path / "db.sql"]
    assert (tmp_path / "db.sql").exists()


@pytest.mark.asyncio
async def test_yearly_tier_uses_years_count(tmp_path: Path) -> None:
    older = _backup(tmp_path, "Yearly-older.txt", timedelta(days=500))
    old = _backup(tmp_path, "Yearly-old.txt", timedelta(days=400))
    policy = AutoPrune(months=0, years=1, keep_latest=0)

    result = await policy.sweep([older, old])

    assert [demotion.source for demotion in result.demoted] == [older]
    assert old.exists()


@pytest.mark.asyncio
async def test_dry_run_plans_without_renaming(tmp_path: Path) -> None:
    path = _backup(tmp_path, "Hourly-Daily-db.sql", timedelta(hours=2))
    policy = AutoPrune(hours=0, days=0)

    result = await policy.sweep([path], dry_run=True)

    assert result.dry_run
    assert [demotion.destination.name for demotion in result.demoted] == ["Daily-db.sql", "db.sql"]
    assert result.files == [tmp_path / "db.sql"]
    assert path.exists()


@pytest.mark.asyncio
async def test_unreadable_files_are_skipped(tmp_path: Path) -> None:
    present = _backup(tmp_path, "Daily-db.sql")
    missing = tmp_path / "Daily-gone.sql"

    result = await AutoPrune().sweep([present, missing])

    assert result.skipped == [missing]
    assert result.files == [present]


@pytest.mark.asyncio
async def test_rename_failure_is_reported_and_batch_continues(tmp_path: Path) -> None:
    blocked = _backup(tmp_path, "Hourly-a.txt", timedelta(hours=3))
    _backup(tmp_path, "a.txt", timedelta(hours=3))
    free = _backup(tmp_path, "Hourly-b.txt", timedelta(hours=2))
    policy = AutoPrune(hours=0, days=0)

    result = await policy.sweep([blocked, free])

    assert len(result.errors) == 1
    assert "Hourly-a.txt" in result.errors[0]
    assert blocked.exists()
    assert (tmp_path / "b.txt").exists()
    assert [demotion.source for demotion in result.demoted] == [free]


@pytest.mark.asyncio
async def test_auto_remove_returns_current_locations(tmp_path: Path) -> None:
    path = _backup(tmp_path, "Hourly-db.sql", timedelta(hours=2))

    files = await AutoPrune(hours=0).auto_remove([path, path])

    assert files == [tmp_path / "db.sql"]


@pytest.mark.asyncio
async def test_remove_untagged_deletes_only_untagged(tmp_path: Path) -> None:
    tagged = _backup(tmp_path, "Weekly-db.sql")
    untagged = _backup(tmp_path, "db.sql")
    missing = tmp_path / "gone.sql"

    removed = await AutoPrune().remove_untagged([tagged, untagged, missing])

    assert removed == [untagged]
    assert not untagged.exists()
    assert tagged.exists()


@pytest.mark.asyncio
async def test_remove_untagged_dry_run_keeps_files(tmp_path: Path) -> None:
    untagged = _backup(tmp_path, "db.sql")

    removed = await AutoPrune().remove_untagged([untagged], dry_run=True)

    assert removed == [untagged]
    assert untagged.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("existing_count", [0, 1, 4])
async def test_would_keep_below_floor_always_keeps(existing_count: int) -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    ancient = Metadata(mtime=now - timedelta(days=900), size=0, is_dir=False, is_file=True)
    existing = [Path(f"backup-{index}") for index in range(existing_count)]

    assert await AutoPrune(keep_latest=5).would_keep(existing, Path("new"), ancient, now=now)


@pytest.mark.asyncio
async def test_would_keep_above_floor_depends_on_tiers() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    existing = [Path(f"backup-{index}") for index in range(3)]
    fresh = Metadata(mtime=now - timedelta(minutes=1), size=0, is_dir=False, is_file=True)
    ancient = Metadata(mtime=now - timedelta(days=400), size=0, is_dir=False, is_file=True)
    policy = AutoPrune(keep_latest=3)

    assert await policy.would_keep(existing, Path("fresh"), fresh, now=now)
    assert not await policy.would_keep(existing, Path("ancient"), ancient, now=now)


def test_limits_clamp_windows_past_the_earliest_date() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    policy = AutoPrune(hours=10**12, years=3000)

    earliest = datetime.min.replace(tzinfo=timezone.utc)
    assert policy.limits(Tag.YEARLY, now) == (earliest, 3000)
    assert policy.limits(Tag.HOURLY, now) == (earliest, 10**12)


@pytest.mark.asyncio
async def test_sweep_with_huge_counts_keeps_everything(tmp_path: Path) -> None:
    files = [
        _backup(tmp_path, f"Yearly-{days}d.sql", timedelta(days=days)) for days in (100, 200)
    ]

    result = await AutoPrune(years=3000, keep_latest=0).sweep(files)

    assert result.demoted == []
    assert result.errors == []
    assert all(path.exists() for path in files)

