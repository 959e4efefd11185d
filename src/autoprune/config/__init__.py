"""Configuration management for autoprune."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import CLIOptions, LoggingSettings, PruneConfig, ScanOptions
from .resolver import ENV_PREFIX, expand_dotted, flatten_for_env, resolve_with_precedence

DEFAULT_CONFIG_PATH = Path("~/.autoprune/config.yaml")
CONFIG_PATH_ENV = "AUTOPRUNE_CONFIG"
_CONFIG_HEADER = textwrap.dedent(
    """\
    # autoprune configuration file
    # Manage with `autoprune config set KEY --value VALUE` or `autoprune config edit`.
    # Set `rules.auto_prune: null` to disable tiered pruning.
    """
)


class ConfigManager:
    """Read and write the configuration file and resolve effective settings."""

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        if config_path is None:
            override = self._env.get(CONFIG_PATH_ENV)
            config_path = Path(override) if override else DEFAULT_CONFIG_PATH
        self._config_path = config_path.expanduser()

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> PruneConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Dotted-key overrides from command-line flags.
            include_env: Whether ``AUTOPRUNE__`` variables are applied.
            ensure_file: Whether to create a default file when missing.
            env_overrides: Environment mapping used instead of ``os.environ``.

        Raises:
            ConfigError: If the file or any override is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_data = None
        if include_env:
            env_data = self._extract_env(env_overrides if env_overrides is not None else self._env)

        return resolve_with_precedence(
            defaults=PruneConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_data or None,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored on disk."""
        return self._read_file()

    def save(self, config: PruneConfig | Mapping[str, Any]) -> None:
        """Write ``config`` to disk with the standard header."""
        if isinstance(config, PruneConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
        self._write_file(data)

    def ensure_exists(self) -> Path:
        """Create a default configuration file if none exists."""
        if not self._config_path.exists():
            self._write_file(PruneConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the configuration file contents, or an empty string."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse configuration file: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        self._config_path.write_text(
            f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
        )

    def _extract_env(self, env: Mapping[str, str]) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, raw_value in env.items():
            if not key.startswith(ENV_PREFIX) or len(key) == len(ENV_PREFIX):
                continue
            dotted = ".".join(segment.lower() for segment in key[len(ENV_PREFIX) :].split("__"))
            try:
                overrides[dotted] = yaml.safe_load(raw_value)
            except yaml.YAMLError:
                overrides[dotted] = raw_value
        return expand_dotted(overrides, source_name="environment")


__all__ = [
    "CONFIG_PATH_ENV",
    "CLIOptions",
    "ConfigError",
    "ConfigManager",
    "DEFAULT_CONFIG_PATH",
    "LoggingSettings",
    "PruneConfig",
    "ScanOptions",
    "flatten_for_env",
    "resolve_with_precedence",
]
