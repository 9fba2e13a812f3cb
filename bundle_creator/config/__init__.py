"""Bundle specification and ambient configuration access."""

from .namespace import Namespace, build_namespace, host_os_name, sanitize_name
from .source import ConfigurationSource
from .tree import PropertyNode, PropertyTree, load_tree

__all__ = [
    "ConfigurationSource",
    "Namespace",
    "PropertyNode",
    "PropertyTree",
    "build_namespace",
    "host_os_name",
    "load_tree",
    "sanitize_name",
]
