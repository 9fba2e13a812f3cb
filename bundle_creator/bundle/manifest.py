"""Manifest helpers for bundle assembly.

The ``manifest.mf`` text layout is consumed by downstream tooling and must
stay byte-for-byte stable.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from pydantic import ValidationError

from ..config.source import ConfigurationSource
from ..errors import ConfigurationError, FilesystemError
from ..schemas.manifest import DEFAULT_RUNLEVEL, Dependency, ManifestInfo, Version

PREFIX = "manifest."

MANIFEST_VERSION = "Manifest-Version"
MANIFEST_VERSION_VALUE = "1.0"
BUNDLE_NAME = "Bundle-Name"
BUNDLE_SYMBOLICNAME = "Bundle-SymbolicName"
BUNDLE_VERSION = "Bundle-Version"
BUNDLE_VENDOR = "Bundle-Vendor"
BUNDLE_COPYRIGHT = "Bundle-Copyright"
BUNDLE_ACTIVATOR = "Bundle-Activator"
BUNDLE_RUNLEVEL = "Bundle-RunLevel"
EXTENDS_BUNDLE = "Extends-Bundle"
BUNDLE_LAZYSTART = "Bundle-LazyStart"
REQUIRE_BUNDLE = "Require-Bundle"

_LIBRARY_ATTR = ";library="
_VERSION_ATTR = f";{BUNDLE_VERSION.lower()}="


def load_manifest(source: ConfigurationSource) -> ManifestInfo:
    """Build a :class:`ManifestInfo` from the ``manifest.*`` properties."""

    def _get(key: str, default: object = None) -> str:
        if default is None:
            return source.get_string(PREFIX + key).strip()
        return source.get_string(PREFIX + key, default).strip()

    name = _get("name")
    symbolic_name = _get("symbolicName")
    raw_version = _get("version")
    try:
        version = Version.parse(raw_version)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid bundle version '{raw_version}'") from exc

    try:
        return ManifestInfo(
            name=name,
            symbolic_name=symbolic_name,
            version=version,
            vendor=_get("vendor", ""),
            copyright=_get("copyright", ""),
            activator_class=_get("activator.class", ""),
            activator_library=_get("activator.library", ""),
            lazy_start=source.get_bool(PREFIX + "lazyStart", False),
            run_level=_get("runLevel", DEFAULT_RUNLEVEL),
            extends_bundle=_get("extends", ""),
            dependencies=_load_dependencies(source),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid bundle manifest: {exc}") from exc


def _load_dependencies(source: ConfigurationSource) -> List[Dependency]:
    # Scanning ends at the first entry without a symbolic name; later entries are ignored.
    dependencies: List[Dependency] = []
    for path in source.indexed_paths(PREFIX + "dependency"):
        symbolic_name = source.get_string(f"{path}.symbolicName", "").strip()
        if not symbolic_name:
            break
        version_range = source.get_string(f"{path}.version", "").strip()
        dependencies.append(Dependency(symbolic_name=symbolic_name, version_range=version_range or None))
    return dependencies


def serialize_manifest(info: ManifestInfo) -> str:
    """Render the manifest in its canonical text form."""

    lines = [
        f"{MANIFEST_VERSION}: {MANIFEST_VERSION_VALUE}",
        f"{BUNDLE_NAME}: {info.name}",
        f"{BUNDLE_SYMBOLICNAME}: {info.symbolic_name}",
        f"{BUNDLE_VERSION}: {info.version}",
        f"{BUNDLE_VENDOR}: {info.vendor}",
    ]
    if info.copyright:
        lines.append(f"{BUNDLE_COPYRIGHT}: {info.copyright}")
    if info.has_activator:
        lines.append(f"{BUNDLE_ACTIVATOR}: {info.activator_class}{_LIBRARY_ATTR}{info.activator_library}")
    if info.run_level:
        lines.append(f"{BUNDLE_RUNLEVEL}: {info.run_level}")
    if info.extends_bundle:
        lines.append(f"{EXTENDS_BUNDLE}: {info.extends_bundle}")
    lines.append(f"{BUNDLE_LAZYSTART}: {'true' if info.lazy_start else 'false'}")
    if info.dependencies:
        indent = " " * (len(REQUIRE_BUNDLE) + 2)
        entries = [_format_dependency(dep) for dep in info.dependencies]
        lines.append(f"{REQUIRE_BUNDLE}: " + f", \\\n{indent}".join(entries))
    return "\n".join(lines) + "\n"


def _format_dependency(dep: Dependency) -> str:
    if dep.version_range:
        return f"{dep.symbolic_name}{_VERSION_ATTR}{dep.version_range}"
    return dep.symbolic_name


def dump_manifest(info: ManifestInfo, path: Path) -> None:
    """Write a manifest to disk."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize_manifest(info), encoding="utf-8", newline="\n")
    except OSError as exc:
        raise FilesystemError(f"Cannot write manifest {path}: {exc}") from exc


def parse_manifest(text: str) -> ManifestInfo:
    """Read the canonical text form back into a :class:`ManifestInfo`."""

    headers = _read_headers(text)
    try:
        activator = headers.get(BUNDLE_ACTIVATOR, "")
        activator_class, _, activator_library = activator.partition(_LIBRARY_ATTR)
        return ManifestInfo(
            name=headers[BUNDLE_NAME],
            symbolic_name=headers[BUNDLE_SYMBOLICNAME],
            version=headers[BUNDLE_VERSION],
            vendor=headers.get(BUNDLE_VENDOR, ""),
            copyright=headers.get(BUNDLE_COPYRIGHT, ""),
            activator_class=activator_class,
            activator_library=activator_library,
            lazy_start=headers.get(BUNDLE_LAZYSTART, "false").lower() == "true",
            run_level=headers.get(BUNDLE_RUNLEVEL, ""),
            extends_bundle=headers.get(EXTENDS_BUNDLE, ""),
            dependencies=_parse_dependencies(headers.get(REQUIRE_BUNDLE, "")),
        )
    except KeyError as exc:
        raise ConfigurationError(f"Manifest is missing header {exc.args[0]}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"Invalid manifest: {exc}") from exc


def _read_headers(text: str) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    logical: List[str] = []
    pending = ""
    for line in text.splitlines():
        if line.endswith("\\"):
            pending += line[:-1]
            continue
        logical.append(pending + line)
        pending = ""
    if pending:
        logical.append(pending)
    for line in logical:
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise ConfigurationError(f"Malformed manifest line: '{line}'")
        headers[key.strip()] = " ".join(value.split())
    return headers


def _parse_dependencies(value: str) -> List[Dependency]:
    # Version ranges such as "[1.0,2.0)" contain commas; split only outside brackets.
    entries: List[str] = []
    depth = 0
    current = ""
    for ch in value:
        if ch in "[(":
            depth += 1
        elif ch in "])":
            depth -= 1
        if ch == "," and depth == 0:
            entries.append(current)
            current = ""
            continue
        current += ch
    entries.append(current)

    dependencies: List[Dependency] = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        symbolic_name, _, version_range = entry.partition(_VERSION_ATTR)
        dependencies.append(
            Dependency(symbolic_name=symbolic_name.strip(), version_range=version_range.strip() or None)
        )
    return dependencies
