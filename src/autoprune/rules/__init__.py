"""Retention engine: tier tags, the auto-prune sweep and rule composition."""

from .autoprune import AutoPrune
from .errors import MetadataError, PruneError, TagError
from .metadata import Metadata
from .models import Demotion, SweepResult
from .rule import Rule, Rules
from .tag import Tag

__all__ = [
    "AutoPrune",
    "Demotion",
    "Metadata",
    "MetadataError",
    "PruneError",
    "Rule",
    "Rules",
    "SweepResult",
    "Tag",
    "TagError",
]
