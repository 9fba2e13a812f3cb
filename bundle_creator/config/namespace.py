"""Ambient property namespace used for ``${name}`` expansion."""

from __future__ import annotations

import logging
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import yaml

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_BASENAMES = ("bundle-creator.yaml", "bundle-creator.yml")
MAX_EXPANSION_DEPTH = 10

_REFERENCE_RE = re.compile(r"\$\{([^}]*)\}")


class Namespace:
    """Flat name/value store with recursive ``${name}`` substitution.

    ``system.*`` names are resolved on demand from the host and the process
    environment; explicitly set properties take precedence.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(values or {})

    def set(self, name: str, value: str) -> None:
        self._values[name] = value

    def update(self, values: Mapping[str, str]) -> None:
        self._values.update(values)

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def get(self, name: str) -> Optional[str]:
        if name in self._values:
            return self._values[name]
        if name.startswith("system."):
            return _system_property(name[len("system."):])
        return None

    def define(self, definition: str) -> None:
        """Apply a ``name=value`` definition; a bare ``name`` defines an empty value."""

        name, sep, value = definition.partition("=")
        name = name.strip()
        if not name:
            raise ConfigurationError(f"Invalid property definition '{definition}'")
        self._values[name] = value if sep else ""

    def expand(self, text: str) -> str:
        return self._expand(text, 0)

    def _expand(self, text: str, depth: int) -> str:
        if depth > MAX_EXPANSION_DEPTH:
            raise ConfigurationError(f"Circular property reference while expanding '{text}'")

        def _replace(match: re.Match[str]) -> str:
            value = self.get(match.group(1))
            if value is None:
                return match.group(0)
            return self._expand(value, depth + 1)

        return _REFERENCE_RE.sub(_replace, text)


def _system_property(name: str) -> Optional[str]:
    if name.startswith("env."):
        return os.environ.get(name[len("env."):])
    if name == "osName":
        return host_os_name()
    if name == "osArch":
        return platform.machine()
    if name == "nodeName":
        return platform.node()
    if name == "currentDir":
        return str(Path.cwd()) + os.sep
    if name == "homeDir":
        return str(Path.home()) + os.sep
    if name == "tempDir":
        return tempfile.gettempdir() + os.sep
    if name == "pid":
        return str(os.getpid())
    return None


def host_os_name() -> str:
    system = platform.system()
    if system == "Windows":
        return "Windows_NT"
    return system


def sanitize_name(value: str) -> str:
    """Replace every character that is not alphanumeric with ``_``."""

    return "".join(ch if ch.isalnum() else "_" for ch in value)


def flatten_mapping(payload: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested YAML mappings into dotted property names."""

    flat: Dict[str, str] = {}
    for raw_key, value in payload.items():
        key = f"{prefix}{raw_key}"
        if isinstance(value, Mapping):
            flat.update(flatten_mapping(value, prefix=f"{key}."))
        elif isinstance(value, bool):
            flat[key] = "true" if value else "false"
        elif value is None:
            flat[key] = ""
        elif isinstance(value, (list, tuple)):
            flat[key] = ",".join(str(item) for item in value)
        else:
            flat[key] = str(value)
    return flat


def load_config_file(path: Path) -> Dict[str, str]:
    try:
        loaded = yaml.load(path.read_text(encoding="utf-8"), Loader=yaml.BaseLoader) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed configuration file {path}: {exc}") from exc
    if not isinstance(loaded, Mapping):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping")
    return flatten_mapping(loaded)


def default_config_paths(cwd: Optional[Path] = None) -> list[Path]:
    """Candidate default configuration files, lowest precedence first."""

    xdg = os.environ.get("XDG_CONFIG_HOME")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    directories = [user_dir / "bundle-creator", cwd or Path.cwd()]
    return [directory / name for directory in directories for name in CONFIG_BASENAMES]


def build_namespace(
    *,
    config_files: Sequence[Path] = (),
    defines: Iterable[str] = (),
    os_name: str,
    os_arch: str,
    load_defaults: bool = True,
    cwd: Optional[Path] = None,
) -> Namespace:
    """Assemble the ambient namespace for one invocation."""

    namespace = Namespace()
    if load_defaults:
        for candidate in default_config_paths(cwd):
            if candidate.is_file():
                logger.debug("Loading default configuration %s", candidate)
                namespace.update(load_config_file(candidate))
    for config_path in config_files:
        logger.debug("Loading configuration %s", config_path)
        namespace.update(load_config_file(Path(config_path)))
    for definition in defines:
        namespace.define(definition)

    namespace.set("osName", os_name)
    namespace.set("osArch", os_arch)
    if not namespace.has("bin"):
        wide = os_arch == "AMD64"
        namespace.set("bin", "bin64" if wide else "bin")
        namespace.set("64", "64" if wide else "")
    return namespace
