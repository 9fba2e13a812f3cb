from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from bundle_creator.bundle.archive import ZIP_EPOCH, ArchivePackager, archive_path_for, default_timestamp
from bundle_creator.errors import PackagingError

from .conftest import write_file


def _staging(tmp_path: Path) -> Path:
    root = tmp_path / "com.example_1.0.0"
    write_file(root / "META-INF" / "manifest.mf", "Manifest-Version: 1.0\n")
    write_file(root / "bin" / "Linux" / "x86_64" / "libsample.so", "x" * 4096)
    write_file(root / "logo.png", "p" * 4096)
    return root


def test_archive_lists_directories_and_files_in_sorted_order(tmp_path: Path) -> None:
    root = _staging(tmp_path)

    archive = ArchivePackager().package(root)

    assert archive == tmp_path / "com.example_1.0.0.bndl"
    with zipfile.ZipFile(archive) as bundle:
        names = bundle.namelist()
        infos = bundle.infolist()
    assert names == [
        "META-INF/",
        "META-INF/manifest.mf",
        "bin/",
        "bin/Linux/",
        "bin/Linux/x86_64/",
        "bin/Linux/x86_64/libsample.so",
        "logo.png",
    ]
    assert all(info.date_time == ZIP_EPOCH for info in infos)


def test_default_policy_deflates_files(tmp_path: Path) -> None:
    archive = ArchivePackager().package(_staging(tmp_path))

    with zipfile.ZipFile(archive) as bundle:
        assert bundle.getinfo("logo.png").compress_type == zipfile.ZIP_DEFLATED
        assert bundle.getinfo("bin/Linux/x86_64/libsample.so").compress_type == zipfile.ZIP_DEFLATED


def test_store_extensions_only_store_listed_types(tmp_path: Path) -> None:
    archive = ArchivePackager(store_extensions=["PNG", ".jpg"]).package(_staging(tmp_path))

    with zipfile.ZipFile(archive) as bundle:
        assert bundle.getinfo("logo.png").compress_type == zipfile.ZIP_STORED
        assert bundle.getinfo("bin/Linux/x86_64/libsample.so").compress_type == zipfile.ZIP_DEFLATED


def test_no_deflate_stores_everything(tmp_path: Path) -> None:
    archive = ArchivePackager(no_deflate=True).package(_staging(tmp_path))

    with zipfile.ZipFile(archive) as bundle:
        assert {info.compress_type for info in bundle.infolist()} == {zipfile.ZIP_STORED}
        assert bundle.read("logo.png") == b"p" * 4096


def test_packaging_is_byte_identical(tmp_path: Path) -> None:
    root = _staging(tmp_path)
    packager = ArchivePackager()

    first = packager.package(root, tmp_path / "first.bndl").read_bytes()
    second = packager.package(root, tmp_path / "second.bndl").read_bytes()

    assert first == second


def test_unwritable_archive_path_raises_packaging_error(tmp_path: Path) -> None:
    root = _staging(tmp_path)
    archive_path_for(root).mkdir()

    with pytest.raises(PackagingError):
        ArchivePackager().package(root)


def test_source_date_epoch_sets_entry_timestamps(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOURCE_DATE_EPOCH", "1700000000")
    assert default_timestamp() == (2023, 11, 14, 22, 13, 20)

    monkeypatch.setenv("SOURCE_DATE_EPOCH", "0")
    assert default_timestamp() == ZIP_EPOCH

    monkeypatch.setenv("SOURCE_DATE_EPOCH", "not-a-number")
    assert default_timestamp() == ZIP_EPOCH


def test_unreadable_staging_tree_raises_packaging_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = _staging(tmp_path)

    def _unreadable(self: Path, pattern: str):  # type: ignore[no-untyped-def]
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "rglob", _unreadable)

    with pytest.raises(PackagingError, match="Cannot write bundle archive"):
        ArchivePackager().package(root)

    assert not archive_path_for(root).exists()


def test_deflated_entries_are_streamed_intact(tmp_path: Path) -> None:
    root = tmp_path / "com.example_1.0.0"
    payload = bytes(range(256)) * 8192
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "large.so").write_bytes(payload)

    archive = ArchivePackager().package(root)

    with zipfile.ZipFile(archive) as bundle:
        info = bundle.getinfo("bin/large.so")
        assert info.compress_type == zipfile.ZIP_DEFLATED
        assert info.file_size == len(payload)
        assert bundle.read("bin/large.so") == payload
