"""Bundle assembly orchestration."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config.namespace import Namespace
from ..config.source import ConfigurationSource
from ..errors import BundleCreatorError, FilesystemError
from ..schemas.manifest import ManifestInfo
from .archive import ArchivePackager, archive_path_for
from .lock import FileLock
from .manifest import load_manifest
from .staging import StagingAssembler
from .utils import compute_sha256, remove_tree

logger = logging.getLogger(__name__)


class BuildState(str, enum.Enum):
    IDLE = "idle"
    LOCKING = "locking"
    CLEANING = "cleaning"
    ASSEMBLING = "assembling"
    PACKAGING = "packaging"
    CLEANUP = "cleanup"
    DONE = "done"
    FAILED = "failed"


@dataclass(slots=True)
class BuildOptions:
    """Settings shared by every specification in one invocation."""

    os_name: str
    os_arch: str
    output_dir: Path = field(default_factory=Path.cwd)
    keep_bundle_dir: bool = False
    no_deflate: bool = False
    store_extensions: Sequence[str] = ()


@dataclass(slots=True)
class BuildResult:
    spec_path: Optional[Path]
    manifest: Optional[ManifestInfo] = None
    staging_dir: Optional[Path] = None
    archive_path: Optional[Path] = None
    sha256: Optional[str] = None
    states: List[BuildState] = field(default_factory=list)

    @property
    def state(self) -> BuildState:
        return self.states[-1] if self.states else BuildState.IDLE


class BundleBuilder:
    """Turns bundle specifications into ``.bndl`` archives.

    Each specification runs under the staging directory's file lock. The
    staging directory is rebuilt from scratch and removed again on failure,
    and on success unless ``keep_bundle_dir`` is set.
    """

    def __init__(
        self,
        options: BuildOptions,
        namespace: Optional[Namespace] = None,
        *,
        lock_factory: Callable[[Path], FileLock] = FileLock,
    ) -> None:
        self.options = options
        self.namespace = namespace or Namespace({"osName": options.os_name, "osArch": options.os_arch})
        self.lock_factory = lock_factory
        self.packager = ArchivePackager(
            no_deflate=options.no_deflate,
            store_extensions=options.store_extensions,
        )

    def build_all(self, spec_paths: Sequence[Path]) -> List[BuildResult]:
        """Build each specification in order, stopping at the first failure."""

        return [self.build(Path(path)) for path in spec_paths]

    def build(self, spec_path: Path) -> BuildResult:
        logger.info("Processing bundle specification %s", spec_path)
        source = ConfigurationSource.from_file(spec_path, self.namespace)
        return self.build_source(source, spec_path=spec_path)

    def build_source(self, source: ConfigurationSource, *, spec_path: Optional[Path] = None) -> BuildResult:
        result = BuildResult(spec_path=spec_path)
        self._enter(result, BuildState.IDLE)

        output_dir = Path(self.options.output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._enter(result, BuildState.FAILED)
            raise FilesystemError(f"Cannot create output directory {output_dir}: {exc}") from exc

        try:
            manifest = load_manifest(source)
        except BundleCreatorError:
            self._enter(result, BuildState.FAILED)
            raise
        result.manifest = manifest
        staging_dir = output_dir / manifest.bundle_name
        result.staging_dir = staging_dir

        self._enter(result, BuildState.LOCKING)
        lock = self.lock_factory(staging_dir)
        try:
            lock.acquire()
        except BundleCreatorError:
            self._enter(result, BuildState.FAILED)
            raise
        try:
            self._run_locked(source, manifest, staging_dir, result)
        finally:
            lock.release()
        return result

    def _run_locked(
        self,
        source: ConfigurationSource,
        manifest: ManifestInfo,
        staging_dir: Path,
        result: BuildResult,
    ) -> None:
        try:
            self._enter(result, BuildState.CLEANING)
            remove_tree(staging_dir)
            try:
                staging_dir.mkdir(parents=True)
            except OSError as exc:
                raise FilesystemError(f"Cannot create staging directory {staging_dir}: {exc}") from exc

            self._enter(result, BuildState.ASSEMBLING)
            assembler = StagingAssembler(
                source,
                os_name=self.options.os_name,
                os_arch=self.options.os_arch,
            )
            assembler.handle_bin(staging_dir)
            assembler.handle_meta(staging_dir, manifest)
            assembler.handle_other(staging_dir)

            self._enter(result, BuildState.PACKAGING)
            archive_path = self.packager.package(staging_dir, archive_path_for(staging_dir))
        except BaseException:
            self._enter(result, BuildState.CLEANUP)
            self._discard_staging(staging_dir)
            self._enter(result, BuildState.FAILED)
            raise

        self._enter(result, BuildState.CLEANUP)
        if self.options.keep_bundle_dir:
            logger.info("Keeping bundle directory %s", staging_dir)
        else:
            remove_tree(staging_dir)
        result.archive_path = archive_path
        result.sha256 = compute_sha256(archive_path)
        self._enter(result, BuildState.DONE)
        logger.info("Bundle written to %s", archive_path)

    def _discard_staging(self, staging_dir: Path) -> None:
        try:
            remove_tree(staging_dir)
        except FilesystemError as exc:
            logger.warning("Failed to remove staging directory %s: %s", staging_dir, exc)

    def _enter(self, result: BuildResult, state: BuildState) -> None:
        logger.debug("%s -> %s", result.spec_path or "<source>", state.value)
        result.states.append(state)
