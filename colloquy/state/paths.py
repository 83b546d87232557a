"""Dotted property paths over nested scope mappings.

A path such as ``user.profile.name`` names a scope (``user``) followed by
keys inside that scope's mapping. Intermediate mappings are created on write.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

SEPARATOR = "."
SCOPES: tuple[str, ...] = ("turn", "dialog", "conversation", "user")


def split_path(path: str) -> list[str]:
    parts = [part.strip() for part in path.split(SEPARATOR)]
    if not parts or any(not part for part in parts):
        raise ValueError(f"invalid property path: {path!r}")
    return parts


def split_scope(path: str) -> tuple[str, list[str]]:
    """Split ``path`` into its scope name and the key path inside the scope."""
    scope, *rest = split_path(path)
    if scope not in SCOPES:
        raise ValueError(f"unknown scope {scope!r} in path {path!r}")
    if not rest:
        raise ValueError(f"path {path!r} addresses a whole scope, not a property")
    return scope, rest


def get_path(mapping: MutableMapping[str, Any], keys: list[str], default: Any = None) -> Any:
    current: Any = mapping
    for key in keys:
        if not isinstance(current, MutableMapping) or key not in current:
            return default
        current = current[key]
    return current


def set_path(mapping: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = mapping
    for key in keys[:-1]:
        child = current.get(key)
        if child is None:
            child = {}
            current[key] = child
        elif not isinstance(child, MutableMapping):
            raise ValueError(f"cannot descend into non-mapping at {key!r}")
        current = child
    current[keys[-1]] = value


def delete_path(mapping: MutableMapping[str, Any], keys: list[str]) -> bool:
    """Remove the value at ``keys``. Returns True if something was removed."""
    parent = get_path(mapping, keys[:-1]) if len(keys) > 1 else mapping
    if not isinstance(parent, MutableMapping) or keys[-1] not in parent:
        return False
    del parent[keys[-1]]
    return True


__all__ = [
    "SCOPES",
    "SEPARATOR",
    "delete_path",
    "get_path",
    "set_path",
    "split_path",
    "split_scope",
]
