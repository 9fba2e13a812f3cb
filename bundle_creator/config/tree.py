"""Hierarchical property tree loaded from bundle specification documents.

Paths address nodes with dotted segments. A segment may carry a zero-based
index among same-named siblings (``code[1]``) and the last segment may carry
an attribute selector (``code[1][@platform]``). ``name`` is shorthand for
``name[0]``.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..errors import ConfigurationError

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]@]+)(?:\[(?P<index>\d+)\])?(?:\[@(?P<attr>[^\]]+)\])?$")
_ATTRIBUTE_ONLY_RE = re.compile(r"^\[@(?P<attr>[^\]]+)\]$")

YAML_SUFFIXES = {".yaml", ".yml"}


@dataclass(slots=True)
class PropertyNode:
    """One element of the tree: a value, attributes and ordered children."""

    name: str
    value: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["PropertyNode"] = field(default_factory=list)

    def child(self, name: str, index: int = 0) -> Optional["PropertyNode"]:
        matches = [node for node in self.children if node.name == name]
        if index < len(matches):
            return matches[index]
        return None


@dataclass(frozen=True, slots=True)
class PathSegment:
    name: Optional[str]
    index: int = 0
    attribute: Optional[str] = None


def parse_path(path: str) -> List[PathSegment]:
    """Split a property path into segments, validating its syntax."""

    if not path:
        raise ConfigurationError("Empty property path")
    segments: List[PathSegment] = []
    parts = path.split(".")
    for position, part in enumerate(parts):
        last = position == len(parts) - 1
        attr_only = _ATTRIBUTE_ONLY_RE.match(part)
        if attr_only and position == 0 and last:
            segments.append(PathSegment(name=None, attribute=attr_only.group("attr")))
            continue
        match = _SEGMENT_RE.match(part)
        if not match:
            raise ConfigurationError(f"Invalid property path '{path}'")
        attr = match.group("attr")
        if attr and not last:
            raise ConfigurationError(f"Attribute selector must end the property path '{path}'")
        segments.append(
            PathSegment(
                name=match.group("name"),
                index=int(match.group("index") or 0),
                attribute=attr,
            )
        )
    return segments


class PropertyTree:
    """Read-only lookup over a :class:`PropertyNode` hierarchy."""

    def __init__(self, root: PropertyNode, *, source: Optional[Path] = None) -> None:
        self.root = root
        self.source = source

    def get_raw(self, path: str) -> Optional[str]:
        """Return the unexpanded value at ``path`` or ``None`` when absent."""

        node: PropertyNode = self.root
        for segment in parse_path(path):
            if segment.name is not None:
                found = node.child(segment.name, segment.index)
                if found is None:
                    return None
                node = found
            if segment.attribute is not None:
                return node.attributes.get(segment.attribute)
        return node.value

    def has_property(self, path: str) -> bool:
        return self.get_raw(path) is not None


def load_tree(path: Union[str, Path]) -> PropertyTree:
    """Load an XML or YAML bundle specification."""

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Cannot read bundle specification {path}: {exc}") from exc
    if path.suffix.lower() in YAML_SUFFIXES:
        return PropertyTree(tree_from_yaml(text, source=str(path)), source=path)
    return PropertyTree(tree_from_xml(text, source=str(path)), source=path)


def tree_from_xml(text: str, *, source: str = "<string>") -> PropertyNode:
    try:
        element = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ConfigurationError(f"Malformed XML in {source}: {exc}") from exc
    return _node_from_element(element)


def _node_from_element(element: ET.Element) -> PropertyNode:
    return PropertyNode(
        name=element.tag,
        value="".join(element.itertext()),
        attributes=dict(element.attrib),
        children=[_node_from_element(child) for child in element],
    )


def tree_from_yaml(text: str, *, source: str = "<string>") -> PropertyNode:
    # BaseLoader keeps every scalar as written: 1.10 stays "1.10", on stays "on".
    try:
        loaded = yaml.load(text, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Malformed YAML in {source}: {exc}") from exc
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Bundle specification {source} must be a mapping")
    root = PropertyNode(name="bundlespec")
    _fill_from_mapping(root, loaded)
    return root


def _fill_from_mapping(node: PropertyNode, mapping: Dict[Any, Any]) -> None:
    for raw_key, value in mapping.items():
        key = str(raw_key)
        if key == "#text":
            node.value = _scalar_text(value)
        elif key.startswith("@"):
            node.attributes[key[1:]] = _scalar_text(value)
        elif isinstance(value, list):
            for item in value:
                node.children.append(_node_from_yaml(key, item))
        else:
            node.children.append(_node_from_yaml(key, value))


def _node_from_yaml(name: str, value: Any) -> PropertyNode:
    node = PropertyNode(name=name)
    if isinstance(value, dict):
        _fill_from_mapping(node, value)
    elif isinstance(value, list):
        # nested lists have no element name of their own
        node.value = ", ".join(_scalar_text(item) for item in value)
    else:
        node.value = _scalar_text(value)
    return node


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
