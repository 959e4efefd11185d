"""Per-destination cleanup orchestration."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from autoprune.rules import AutoPrune, Metadata, PruneError, Rules, Tag

from .discovery import DirectoryScanner
from .models import CandidateFile, CleanupResult

LOGGER = logging.getLogger(__name__)


class CleanupPipeline:
    """Tag, sweep and delete backups in a destination directory."""

    def __init__(
        self,
        rules: Rules,
        scanner: DirectoryScanner,
        *,
        dry_run: bool = False,
        delete_untagged: bool = True,
        tag_new: bool = True,
    ) -> None:
        self.rules = rules
        self.scanner = scanner
        self.dry_run = dry_run
        self.delete_untagged = delete_untagged
        self.tag_new = tag_new

    @property
    def policy(self) -> AutoPrune:
        """Return the configured auto-prune policy.

        Raises:
            PruneError: If auto-prune is disabled.
        """
        if self.rules.auto_prune is None:
            raise PruneError("Auto-prune is not configured; set rules.auto_prune to enable it.")
        return self.rules.auto_prune

    async def run(self, root: Path) -> CleanupResult:
        """Clean a single destination directory.

        Args:
            root: Directory holding the backup files.

        Returns:
            CleanupResult: Aggregated outcome of every stage.

        Raises:
            PruneError: If auto-prune is disabled.
        """
        policy = self.policy
        result = CleanupResult(root=root, dry_run=self.dry_run)

        candidates = await self._discover(root)
        known: dict[Path, Metadata] = {}
        for candidate in candidates:
            path = await self._tag_new(candidate, result)
            known[path] = candidate.metadata

        result.sweep = await policy.sweep(list(known), dry_run=self.dry_run, known=known)
        result.errors.extend(result.sweep.errors)

        if not self.delete_untagged:
            return result

        newest = sorted(
            result.sweep.files,
            key=lambda path: result.sweep.metadata[path].mtime,
            reverse=True,
        )
        floor = set(newest[: policy.keep_latest])
        untagged = [path for path in result.sweep.files if Tag.get_tags(path.name)[0] == [Tag.NONE]]
        result.protected = [path for path in untagged if path in floor]
        doomed = [path for path in untagged if path not in floor]

        result.removed = await policy.remove_untagged(doomed, dry_run=self.dry_run)
        removed = set(result.removed)
        for path in doomed:
            if path not in removed:
                result.errors.append(f"{path}: could not remove untagged file")

        LOGGER.info(
            "Cleaned %s: %d demoted, %d removed, %d protected",
            root,
            len(result.sweep.demoted),
            len(result.removed),
            len(result.protected),
        )
        return result

    async def admit(self, root: Path, candidate: Path) -> bool:
        """Return whether ``candidate`` would survive the configured rules.

        Raises:
            MetadataError: If the candidate cannot be inspected.
        """
        existing = [item.path for item in await self._discover(root) if item.path != candidate]
        metadata = await asyncio.to_thread(Metadata.from_path, candidate)
        return await self.rules.would_survive(existing, candidate, metadata)

    async def _discover(self, root: Path) -> list[CandidateFile]:
        return await asyncio.to_thread(lambda: list(self.scanner.scan(root)))

    async def _tag_new(self, candidate: CandidateFile, result: CleanupResult) -> Path:
        path = candidate.path
        if not self.tag_new or Tag.get_tags(path.name)[0] != [Tag.NONE]:
            return path

        tags = Tag.applicable_tags(candidate.metadata)
        if not tags:
            return path

        if self.dry_run:
            destination = path.with_name(Tag.encode(tags, path.name))
        else:
            try:
                destination = await asyncio.to_thread(Tag.tag, path)
            except PruneError as exc:
                LOGGER.error("Failed to tag %s: %s", path, exc)
                result.errors.append(str(exc))
                return path

        result.tagged.append((path, destination))
        return destination


__all__ = ["CleanupPipeline"]
