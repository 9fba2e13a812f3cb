"""Build bundle archives from bundle specification files."""

__version__ = "0.1.0"
from .bundle.builder import BuildOptions, BuildResult, BundleBuilder
from .config import ConfigurationSource, Namespace, build_namespace
from .errors import (
    BundleCreatorError,
    ConfigurationError,
    FilesystemError,
    LockTimeoutError,
    PackagingError,
)
from .schemas.manifest import Dependency, ManifestInfo, Version

__all__ = [
    "__version__",
    "BuildOptions",
    "BuildResult",
    "BundleBuilder",
    "BundleCreatorError",
    "ConfigurationError",
    "ConfigurationSource",
    "Dependency",
    "FilesystemError",
    "LockTimeoutError",
    "ManifestInfo",
    "Namespace",
    "PackagingError",
    "Version",
    "build_namespace",
]
