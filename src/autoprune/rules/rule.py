"""Composition of retention rules behind a single admission check."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, ConfigDict

from .autoprune import AutoPrune
from .metadata import Metadata

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Rule(Protocol):
    """A retention rule that can veto a prospective backup file."""

    async def would_keep(
        self,
        existing_files: Sequence[Path],
        new_path: Path,
        new_metadata: Metadata,
    ) -> bool:
        """Return whether ``new_path`` would survive the rule."""
        ...


class Rules(BaseModel):
    """Configured retention rules.

    Attributes:
        auto_prune: Tiered auto-prune policy, or None when disabled.
    """

    model_config = ConfigDict(extra="forbid")

    auto_prune: Optional[AutoPrune] = None

    def configured(self) -> list[tuple[str, Rule]]:
        """Return the enabled rules paired with their display names."""
        rules: list[tuple[str, Rule]] = []
        if self.auto_prune is not None:
            rules.append(("AutoPrune", self.auto_prune))
        return rules

    async def would_survive(
        self,
        existing_files: Sequence[Path],
        destination: Path,
        metadata: Metadata,
    ) -> bool:
        """Return True only if every configured rule would keep ``destination``."""
        for name, rule in self.configured():
            if not await rule.would_keep(existing_files, destination, metadata):
                LOGGER.debug("File %s would not survive because of %s", destination, name)
                return False

        LOGGER.debug("File %s would survive", destination)
        return True


__all__ = ["Rule", "Rules"]
