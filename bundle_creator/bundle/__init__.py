"""Bundle assembly utilities."""

from .archive import ArchivePackager, archive_path_for
from .builder import BuildOptions, BuildResult, BuildState, BundleBuilder
from .lock import FileLock, acquire
from .manifest import dump_manifest, load_manifest, parse_manifest, serialize_manifest
from .staging import StagingAssembler

__all__ = [
    "ArchivePackager",
    "BuildOptions",
    "BuildResult",
    "BuildState",
    "BundleBuilder",
    "FileLock",
    "StagingAssembler",
    "acquire",
    "archive_path_for",
    "dump_manifest",
    "load_manifest",
    "parse_manifest",
    "serialize_manifest",
]
