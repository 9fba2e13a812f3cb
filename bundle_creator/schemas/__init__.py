"""Schema definitions for bundle metadata."""

from .manifest import DEFAULT_RUNLEVEL, Dependency, ManifestInfo, Version

__all__ = [
    "DEFAULT_RUNLEVEL",
    "Dependency",
    "ManifestInfo",
    "Version",
]
