"""Version information for the snpstack package."""

from __future__ import annotations

from importlib import metadata

# NOTE: When bumping the project version remember to update this fallback value
# alongside the version declared in pyproject.toml.
_FALLBACK_VERSION = "0.3.0"

try:
    __version__ = metadata.version("snpstack")
except metadata.PackageNotFoundError:  # pragma: no cover - during local dev
    __version__ = _FALLBACK_VERSION

__all__ = ["__version__"]
