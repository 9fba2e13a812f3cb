"""Staging directory assembly."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import List, Optional

from ..config.source import ConfigurationSource
from ..errors import FilesystemError
from ..schemas.manifest import ManifestInfo
from .manifest import dump_manifest
from .utils import copy_entry, resolve_globs

logger = logging.getLogger(__name__)

BIN_DIR = "bin"
META_DIR = "META-INF"
MANIFEST_FILE = "manifest.mf"


class StagingAssembler:
    """Populates a staging directory from one bundle specification.

    ``code[i]`` entries become ``bin/<os>/<arch>/`` content, the manifest is
    written to ``META-INF/manifest.mf`` and ``files`` entries land in the root.
    Relative patterns resolve against ``base_dir``, the working directory unless
    given.
    """

    def __init__(
        self,
        source: ConfigurationSource,
        *,
        os_name: str,
        os_arch: str,
        base_dir: Optional[Path] = None,
    ) -> None:
        self.source = source
        self.os_name = os_name
        self.os_arch = os_arch
        self.base_dir = base_dir or Path.cwd()

    @property
    def default_platform(self) -> str:
        return f"{self.os_name}/{self.os_arch}"

    def handle_bin(self, root: Path) -> None:
        bin_dir = root / BIN_DIR
        _mkdir(bin_dir)
        # Unlike dependencies, code entries are scanned until an index is absent.
        for path in self.source.indexed_paths("code"):
            if not self.source.has_property(path):
                break
            expression = self.source.get_string(path, "")
            platform = self.source.get_string(f"{path}[@platform]", "").strip()
            if "/" not in platform:
                platform = self.default_platform
            platform_dir = bin_dir.joinpath(*PurePosixPath(platform).parts)
            _mkdir(platform_dir)
            logger.debug("Collecting %s for platform %s", path, platform)
            for match in sorted(resolve_globs(expression, self.base_dir)):
                if match.exists():
                    self._copy(match, platform_dir, root)

    def handle_meta(self, root: Path, info: ManifestInfo) -> Path:
        meta_dir = root / META_DIR
        _mkdir(meta_dir)
        manifest_path = meta_dir / MANIFEST_FILE
        dump_manifest(info, manifest_path)
        return manifest_path

    def handle_other(self, root: Path) -> None:
        for expression in self._file_expressions():
            for match in sorted(resolve_globs(expression, self.base_dir)):
                self._copy(match, root, root)

    def _file_expressions(self) -> List[str]:
        expressions: List[str] = []
        for path in self.source.indexed_paths("files"):
            if not self.source.has_property(path):
                break
            expressions.append(self.source.get_string(path))
        return expressions

    def _copy(self, match: Path, destination: Path, root: Path) -> None:
        resolved_root = root.resolve()
        resolved = match.resolve()
        if resolved == resolved_root or resolved in resolved_root.parents:
            logger.warning("Skipping %s: it contains the staging directory", match)
            return
        copy_entry(match, destination)


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create directory {path}: {exc}") from exc
