"""Bundle archive creation."""

from __future__ import annotations

import logging
import os
import shutil
import stat
import time
import zipfile
import zlib
from pathlib import Path
from typing import Iterable, Optional, Tuple

from ..errors import PackagingError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".bndl"
COMPRESSION_LEVEL = 9
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
CHUNK_SIZE = 1024 * 1024

DateTime = Tuple[int, int, int, int, int, int]


def archive_path_for(staging_dir: Path) -> Path:
    return staging_dir.with_name(staging_dir.name + ARCHIVE_SUFFIX)


def normalize_extensions(values: Iterable[str]) -> frozenset[str]:
    return frozenset(value.strip().lstrip(".").lower() for value in values if value.strip().lstrip("."))


def default_timestamp() -> DateTime:
    """Entry timestamp: ``SOURCE_DATE_EPOCH`` when set, otherwise the zip epoch."""

    raw = os.environ.get("SOURCE_DATE_EPOCH")
    if not raw:
        return ZIP_EPOCH
    try:
        stamp = time.gmtime(int(raw))[:6]
    except (ValueError, OverflowError, OSError):
        logger.warning("Ignoring invalid SOURCE_DATE_EPOCH value %r", raw)
        return ZIP_EPOCH
    return max(stamp, ZIP_EPOCH)  # type: ignore[return-value]


class ArchivePackager:
    """Zips a staging tree into ``<staging dir>.bndl``.

    Entries are written in sorted order with fixed timestamps so that the same
    tree always yields the same bytes.
    """

    def __init__(
        self,
        *,
        no_deflate: bool = False,
        store_extensions: Iterable[str] = (),
        compression_level: int = COMPRESSION_LEVEL,
        timestamp: Optional[DateTime] = None,
    ) -> None:
        self.no_deflate = no_deflate
        self.store_extensions = normalize_extensions(store_extensions)
        self.compression_level = compression_level
        self.timestamp = timestamp

    def compress_type_for(self, path: Path) -> int:
        if self.no_deflate:
            return zipfile.ZIP_STORED
        if path.suffix.lstrip(".").lower() in self.store_extensions:
            return zipfile.ZIP_STORED
        return zipfile.ZIP_DEFLATED

    def package(self, staging_dir: Path, archive_path: Optional[Path] = None) -> Path:
        archive_path = archive_path or archive_path_for(staging_dir)
        date_time = self.timestamp or default_timestamp()
        try:
            entries = sorted(
                staging_dir.rglob("*"),
                key=lambda path: path.relative_to(staging_dir).as_posix(),
            )
            logger.debug("Packaging %d entries from %s", len(entries), staging_dir)
            with zipfile.ZipFile(archive_path, "w") as bundle:
                for entry in entries:
                    self._add_entry(bundle, staging_dir, entry, date_time)
        except (OSError, zipfile.BadZipFile, zlib.error) as exc:
            _discard(archive_path)
            raise PackagingError(f"Cannot write bundle archive {archive_path}: {exc}") from exc
        except BaseException:
            _discard(archive_path)
            raise
        return archive_path

    def _add_entry(self, bundle: zipfile.ZipFile, root: Path, entry: Path, date_time: DateTime) -> None:
        arcname = entry.relative_to(root).as_posix()
        mode = entry.stat().st_mode
        if entry.is_dir():
            info = zipfile.ZipInfo(arcname + "/", date_time=date_time)
            info.external_attr = (stat.S_IFDIR | stat.S_IMODE(mode)) << 16 | 0x10
            bundle.writestr(info, b"", compress_type=zipfile.ZIP_STORED)
            return
        info = zipfile.ZipInfo(arcname, date_time=date_time)
        info.external_attr = (stat.S_IFREG | stat.S_IMODE(mode)) << 16
        info.compress_type = self.compress_type_for(entry)
        if info.compress_type == zipfile.ZIP_DEFLATED:
            # spelled compress_level from 3.13 on, which keeps this name as an alias
            info._compresslevel = self.compression_level
        with entry.open("rb") as source, bundle.open(info, "w") as target:
            shutil.copyfileobj(source, target, CHUNK_SIZE)


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.debug("Cannot remove partial archive %s: %s", path, exc)
