"""Shared filesystem helpers used by bundle tooling."""

from __future__ import annotations

import glob
import hashlib
import logging
import os
import re
import shutil
import stat
from pathlib import Path
from typing import Iterable, List, Set

from ..errors import FilesystemError

logger = logging.getLogger(__name__)

_PATTERN_SEPARATORS = re.compile(r"[,;\r\n]")


def compute_sha256(path: Path) -> str:
    """Return the SHA-256 checksum for a file."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def split_patterns(expression: str) -> List[str]:
    """Split a glob list on ``,``, ``;`` and line breaks, dropping empty entries."""

    return [token.strip() for token in _PATTERN_SEPARATORS.split(expression) if token.strip()]


def resolve_globs(expression: str, base_dir: Path) -> Set[Path]:
    """Expand every pattern in ``expression``; wildcards also match dot files."""

    matches: Set[Path] = set()
    for pattern in split_patterns(expression):
        candidate = Path(pattern).expanduser()
        if not candidate.is_absolute():
            candidate = base_dir / candidate
        found = glob.glob(str(candidate), include_hidden=True)
        if not found:
            logger.debug("Pattern %s matched nothing", pattern)
        matches.update(Path(entry) for entry in found)
    return matches


def is_hidden(path: Path) -> bool:
    if path.name.startswith("."):
        return True
    if os.name != "nt":
        return False
    attributes = os.stat(path, follow_symlinks=False).st_file_attributes
    return bool(attributes & stat.FILE_ATTRIBUTE_HIDDEN)


def copy_entry(source: Path, destination: Path) -> None:
    """Copy a file or directory tree, never copying hidden entries.

    When ``destination`` is an existing directory the copy is placed inside it
    under the source's base name.
    """

    target = destination / source.name if destination.is_dir() else destination
    try:
        if is_hidden(source):
            logger.debug("Skipping hidden entry %s", source)
            return
        if source.is_dir():
            _copy_directory(source, target)
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
    except OSError as exc:
        raise FilesystemError(f"Cannot copy {source} to {target}: {exc}") from exc


def _copy_directory(source: Path, target: Path) -> None:
    target.mkdir(parents=True, exist_ok=True)
    for child in sorted(source.iterdir()):
        copy_entry(child, target)


def make_tree_writable(path: Path) -> None:
    for entry in _walk_entries(path):
        try:
            mode = os.stat(entry, follow_symlinks=False).st_mode
            if not stat.S_ISLNK(mode):
                os.chmod(entry, mode | stat.S_IWUSR)
        except OSError as exc:
            logger.debug("Cannot clear write protection on %s: %s", entry, exc)


def _walk_entries(path: Path) -> Iterable[Path]:
    yield path
    for root, dirs, files in os.walk(path):
        for name in dirs + files:
            yield Path(root) / name


def remove_tree(path: Path) -> None:
    """Forcibly remove a directory tree, clearing write protection first."""

    if not path.exists() and not path.is_symlink():
        return
    if path.is_dir() and not path.is_symlink():
        make_tree_writable(path)
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as exc:
        raise FilesystemError(f"Cannot remove {path}: {exc}") from exc
