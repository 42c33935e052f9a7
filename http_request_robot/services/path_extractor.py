"""
Path extraction over parsed JSON documents.

Paths are dot separated with optional ``[N]`` index suffixes, so
``items[0].name`` and ``items.0.name`` address the same value. Lookups never
raise: anything that cannot be resolved yields ``MISSING``.
"""

import re
from typing import Any


class _Missing:
    """Marker for a path that does not resolve. Distinct from JSON ``null``."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_INDEX_PATTERN = re.compile(r"\[(\d+)\]")


def split_path(path: str) -> list[str]:
    """
    Split a path into segments.

    Example:
        >>> split_path("data.items[0].name")
        ['data', 'items', '0', 'name']
    """
    return _INDEX_PATTERN.sub(r".\1", path).split(".")


def extract(value: Any, path: str) -> Any:
    """
    Resolve ``path`` against a parsed JSON value.

    Args:
        value: Parsed JSON (dict, list or scalar)
        path: Dotted path with optional bracket indexes

    Returns:
        The value found, or MISSING when any segment cannot be resolved

    Example:
        >>> extract({"a": {"b": [{"c": 1}]}}, "a.b[0].c")
        1
    """
    current = value
    for segment in split_path(path):
        if current is None or current is MISSING:
            return MISSING
        if isinstance(current, dict):
            current = current.get(segment, MISSING)
        elif isinstance(current, list):
            if not (segment.isascii() and segment.isdigit()):
                return MISSING
            index = int(segment)
            current = current[index] if index < len(current) else MISSING
        else:
            return MISSING
    return current
