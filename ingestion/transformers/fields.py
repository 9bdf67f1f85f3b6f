"""
Dotted-path field access on loosely typed records
"""

from typing import Any, Mapping, Optional


class _Missing:
    """Sentinel for a path that does not resolve"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "MISSING"


MISSING = _Missing()


def extract_field(record: Any, path: Optional[str]) -> Any:
    """
    Walk ``record`` along a dotted ``path`` ("a.b.c").

    Returns MISSING when the path is empty, a segment is absent, or an
    intermediate value is not a mapping. Never raises.
    """
    if not path:
        return MISSING

    value = record
    for key in path.split("."):
        if isinstance(value, Mapping) and key in value:
            value = value[key]
        else:
            return MISSING
    return value


def field_exists(record: Any, path: Optional[str]) -> bool:
    return extract_field(record, path) is not MISSING
