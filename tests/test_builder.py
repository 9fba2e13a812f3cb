from __future__ import annotations

import stat
import zipfile
from pathlib import Path

import pytest

from bundle_creator.bundle.builder import BuildOptions, BuildState, BundleBuilder
from bundle_creator.bundle.lock import FileLock, lock_path_for
from bundle_creator.bundle.manifest import parse_manifest
from bundle_creator.bundle.utils import compute_sha256
from bundle_creator.config import build_namespace
from bundle_creator.errors import ConfigurationError, LockTimeoutError, PackagingError

from .conftest import write_file

BUNDLE_NAME = "com.example.sample_1.2.3"


def _builder(output_dir: Path, **overrides: object) -> BundleBuilder:
    options = BuildOptions(os_name="Linux", os_arch="x86_64", output_dir=output_dir)
    for key, value in overrides.items():
        setattr(options, key, value)
    namespace = build_namespace(os_name="Linux", os_arch="x86_64", load_defaults=False)
    return BundleBuilder(options, namespace)


def test_build_creates_archive_and_removes_staging(sample_project: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out" / "nested"

    result = _builder(output_dir).build(sample_project)

    assert result.archive_path == output_dir / f"{BUNDLE_NAME}.bndl"
    assert result.sha256 == compute_sha256(result.archive_path)
    assert result.states == [
        BuildState.IDLE,
        BuildState.LOCKING,
        BuildState.CLEANING,
        BuildState.ASSEMBLING,
        BuildState.PACKAGING,
        BuildState.CLEANUP,
        BuildState.DONE,
    ]
    assert not (output_dir / BUNDLE_NAME).exists()
    assert not lock_path_for(output_dir / BUNDLE_NAME).exists()

    with zipfile.ZipFile(result.archive_path) as bundle:
        names = set(bundle.namelist())
        manifest = parse_manifest(bundle.read("META-INF/manifest.mf").decode("utf-8"))
    assert {
        "bin/Linux/x86_64/libsample.so",
        "bin/Windows_NT/x64/Sample.dll",
        "a.txt",
        "b.txt",
    } <= names
    assert ".c.txt" not in names
    assert manifest.symbolic_name == "com.example.sample"
    assert [dep.symbolic_name for dep in manifest.dependencies] == ["com.example.core", "com.example.util"]


def test_keep_bundle_dir_retains_staging(sample_project: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out"

    _builder(output_dir, keep_bundle_dir=True).build(sample_project)

    staging = output_dir / BUNDLE_NAME
    assert (staging / "META-INF" / "manifest.mf").is_file()
    assert (staging / "bin" / "Linux" / "x86_64" / "libsample.so").is_file()


def test_stale_read_only_staging_is_replaced(sample_project: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out"
    stale = output_dir / BUNDLE_NAME
    leftover = write_file(stale / "old" / "leftover.txt")
    leftover.chmod(stat.S_IREAD)
    (stale / "old").chmod(stat.S_IREAD | stat.S_IEXEC)

    _builder(output_dir, keep_bundle_dir=True).build(sample_project)

    assert not (stale / "old").exists()
    assert (stale / "a.txt").is_file()


def test_repeated_builds_are_byte_identical(sample_project: Path, tmp_path: Path) -> None:
    builder = _builder(tmp_path / "out")

    first = builder.build(sample_project).archive_path.read_bytes()
    second = builder.build(sample_project).archive_path.read_bytes()

    assert first == second


def test_packaging_failure_removes_staging_and_releases_lock(sample_project: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out"
    (output_dir / f"{BUNDLE_NAME}.bndl").mkdir(parents=True)
    builder = _builder(output_dir, keep_bundle_dir=True)

    with pytest.raises(PackagingError):
        builder.build(sample_project)

    assert not (output_dir / BUNDLE_NAME).exists()
    assert not lock_path_for(output_dir / BUNDLE_NAME).exists()


def test_assembly_failure_rolls_back(sample_project: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    output_dir = tmp_path / "out"
    states: list[BuildState] = []
    builder = _builder(output_dir)
    original_enter = builder._enter

    def _record(result, state):  # type: ignore[no-untyped-def]
        states.append(state)
        original_enter(result, state)

    def _explode(self, root):  # type: ignore[no-untyped-def]
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(builder, "_enter", _record)
    monkeypatch.setattr("bundle_creator.bundle.staging.StagingAssembler.handle_other", _explode)

    with pytest.raises(RuntimeError, match="disk on fire"):
        builder.build(sample_project)

    assert states[-3:] == [BuildState.ASSEMBLING, BuildState.CLEANUP, BuildState.FAILED]
    assert not (output_dir / BUNDLE_NAME).exists()
    assert not (output_dir / f"{BUNDLE_NAME}.bndl").exists()
    assert not lock_path_for(output_dir / BUNDLE_NAME).exists()


def test_missing_manifest_field_fails_before_locking(tmp_path: Path) -> None:
    spec = write_file(tmp_path / "broken.xml", "<bundlespec><manifest><name>x</name></manifest></bundlespec>")
    output_dir = tmp_path / "out"

    with pytest.raises(ConfigurationError):
        _builder(output_dir).build(spec)

    assert list(output_dir.iterdir()) == []


def test_lock_timeout_leaves_foreign_lock_and_staging_alone(sample_project: Path, tmp_path: Path) -> None:
    output_dir = tmp_path / "out"
    staging = output_dir / BUNDLE_NAME
    write_file(staging / "in-progress.txt")
    foreign = lock_path_for(staging)
    foreign.write_text("", encoding="utf-8")

    builder = _builder(output_dir)
    builder.lock_factory = lambda path: FileLock(path, max_attempts=2, sleep=lambda _delay: None)

    with pytest.raises(LockTimeoutError):
        builder.build(sample_project)

    assert foreign.exists()
    assert (staging / "in-progress.txt").exists()


def test_build_all_stops_at_first_failure(sample_project: Path, tmp_path: Path) -> None:
    broken = write_file(tmp_path / "broken.xml", "<bundlespec><manifest/></bundlespec>")
    second = write_file(
        sample_project.parent / "second.xml",
        sample_project.read_text(encoding="utf-8").replace("com.example.sample", "com.example.second"),
    )
    output_dir = tmp_path / "out"

    with pytest.raises(ConfigurationError):
        _builder(output_dir).build_all([sample_project, broken, second])

    assert (output_dir / f"{BUNDLE_NAME}.bndl").exists()
    assert not (output_dir / "com.example.second_1.2.3.bndl").exists()


def test_yaml_specification_builds(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    write_file(tmp_path / "lib" / "libyaml.so")
    spec = write_file(
        tmp_path / "bundle.yaml",
        "manifest:\n"
        "  name: YAML Bundle\n"
        "  symbolicName: com.example.yaml\n"
        "  version: '0.9'\n"
        "  vendor: ${vendor}\n"
        "code:\n"
        "  - '#text': lib/*.so\n"
        "    '@platform': ${osName}/armv7\n",
    )
    builder = _builder(tmp_path / "out")
    builder.namespace.set("vendor", "Example Inc.")

    result = builder.build(spec)

    with zipfile.ZipFile(result.archive_path) as bundle:
        assert "bin/Linux/armv7/libyaml.so" in bundle.namelist()
        manifest = parse_manifest(bundle.read("META-INF/manifest.mf").decode("utf-8"))
    assert manifest.vendor == "Example Inc."
    assert str(manifest.version) == "0.9.0"
