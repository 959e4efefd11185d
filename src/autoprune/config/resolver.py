"""Merging of configuration layers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import PruneConfig

ENV_PREFIX = "AUTOPRUNE__"


def resolve_with_precedence(
    *,
    defaults: PruneConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> PruneConfig:
    """Layer overrides onto ``defaults`` (file, then environment, then CLI).

    Keys may be nested mappings or dotted paths such as
    ``rules.auto_prune.days``.

    Raises:
        ConfigError: If an override is malformed or the result is invalid.
    """
    merged = defaults.model_dump(mode="python")
    layers = {"file": file_overrides, "environment": env_overrides, "cli": cli_overrides}
    for name, layer in layers.items():
        if layer is not None:
            merged = _deep_merge(merged, expand_dotted(layer, source_name=name))

    try:
        return PruneConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def flatten_for_env(config: PruneConfig) -> Dict[str, str]:
    """Render ``config`` as ``AUTOPRUNE__SECTION__KEY`` environment variables."""
    flat: Dict[str, str] = {}
    pending: list[tuple[list[str], Any]] = [([key], value) for key, value in config.model_dump().items()]
    while pending:
        path, value = pending.pop()
        if isinstance(value, dict) and value:
            pending.extend((path + [str(key)], child) for key, child in value.items())
            continue
        if isinstance(value, (dict, list)):
            rendered = yaml.safe_dump(value, default_flow_style=True).strip()
        else:
            rendered = "null" if value is None else str(value)
        flat[ENV_PREFIX + "__".join(part.upper() for part in path)] = rendered
    return dict(sorted(flat.items()))


def expand_dotted(source: Mapping[str, Any], *, source_name: str = "cli") -> dict[str, Any]:
    """Turn dotted keys of ``source`` into nested mappings.

    Raises:
        ConfigError: If ``source`` is not a mapping or keys collide.
    """
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source_name=source_name)
        *parents, leaf = key.split(".")
        node = expanded
        for segment in parents:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override for {key} conflicts with an existing value."
                )
            node = child
        if isinstance(value, dict) and isinstance(node.get(leaf), dict):
            node[leaf] = _deep_merge(node[leaf], value)
        else:
            node[leaf] = value
    return expanded


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = ["ENV_PREFIX", "expand_dotted", "flatten_for_env", "resolve_with_precedence"]
