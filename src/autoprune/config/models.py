"""Configuration models for autoprune."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from autoprune.rules import AutoPrune, Rules


class SettingsModel(BaseModel):
    """Base model rejecting unknown keys."""

    model_config = ConfigDict(extra="forbid")


class ScanOptions(SettingsModel):
    """Which files in a destination are considered backups.

    Attributes:
        include_hidden: Whether dot-files are swept.
        follow_symlinks: Whether symlinked files are swept.
    """

    include_hidden: bool = False
    follow_symlinks: bool = False


class LoggingSettings(SettingsModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        file: Optional log file path; rotated by size.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of rotated log files to retain.
    """

    level: str = "WARNING"
    file: Optional[str] = None
    max_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=3, ge=0)


class CLIOptions(SettingsModel):
    """CLI presentation defaults.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


def _default_rules() -> Rules:
    return Rules(auto_prune=AutoPrune())


class PruneConfig(SettingsModel):
    """Top-level autoprune configuration.

    Attributes:
        rules: Retention rules; ``rules.auto_prune: null`` disables pruning.
        scan: Destination discovery settings.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    rules: Rules = Field(default_factory=_default_rules)
    scan: ScanOptions = Field(default_factory=ScanOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "SettingsModel",
    "ScanOptions",
    "LoggingSettings",
    "CLIOptions",
    "PruneConfig",
]
