"""Typed, expanding accessor over a bundle specification tree."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Union

from ..errors import ConfigurationError
from .namespace import Namespace
from .tree import PropertyTree, load_tree

_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0"}

_MISSING = object()


class ConfigurationSource:
    """Read-only view of one specification; every string is expanded via the namespace."""

    def __init__(self, tree: PropertyTree, namespace: Optional[Namespace] = None) -> None:
        self.tree = tree
        self.namespace = namespace or Namespace()

    @classmethod
    def from_file(cls, path: Union[str, Path], namespace: Optional[Namespace] = None) -> "ConfigurationSource":
        return cls(load_tree(path), namespace)

    def has_property(self, path: str) -> bool:
        return self.tree.has_property(path)

    def get_string(self, path: str, default: object = _MISSING) -> str:
        raw = self.tree.get_raw(path)
        if raw is None:
            if default is _MISSING:
                raise ConfigurationError(f"Missing required property '{path}'")
            raw = str(default)
        return self.namespace.expand(raw)

    def get_bool(self, path: str, default: bool) -> bool:
        raw = self.tree.get_raw(path)
        if raw is None:
            return default
        lowered = self.namespace.expand(raw).strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Property '{path}' is not a boolean: '{raw}'")

    def indexed_paths(self, prefix: str, suffix: str = "") -> Iterator[str]:
        """Yield ``prefix[0]suffix``, ``prefix[1]suffix``, ... indefinitely.

        Callers decide when to stop; groups differ in what ends a scan.
        """

        index = 0
        while True:
            yield f"{prefix}[{index}]{suffix}"
            index += 1
