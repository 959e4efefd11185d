"""Tag-based retention for backup destinations."""

from importlib import metadata as _metadata

try:
    __version__ = _metadata.version("autoprune")
except _metadata.PackageNotFoundError:  # pragma: no cover - source checkout without install
    __version__ = "0.0.0"

__all__ = ["__version__"]
