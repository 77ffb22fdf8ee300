"""Helpers for reading untyped TOML/JSON payloads.

Used at the boundaries where tagrel ingests `tagrel.toml` or `gh ... --json`
output. They validate at runtime and narrow types for static checkers.
"""

from __future__ import annotations

from typing import Mapping, TypeGuard, cast

StrDict = dict[str, object]


def is_str_dict(obj: object) -> TypeGuard[StrDict]:
    """Return True if obj is a dict with string keys."""
    if not isinstance(obj, dict):
        return False
    d = cast(dict[object, object], obj)
    return all(isinstance(k, str) for k in d.keys())


def as_str_dict(obj: object) -> StrDict | None:
    if is_str_dict(obj):
        return obj
    return None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """Get a string value, stripped.

    Returns None if missing, not a str, or empty after stripping.
    """
    value = table.get(key)
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def get_bool(table: Mapping[str, object], key: str) -> bool | None:
    value = table.get(key)
    if not isinstance(value, bool):
        return None
    return value


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    """Get a nested table (dict with string keys)."""
    return as_str_dict(table.get(key))


def get_str_list(table: Mapping[str, object], key: str) -> list[str] | None:
    """Get a list of non-empty strings; None if any item is not a string."""
    value = table.get(key)
    if not isinstance(value, list):
        return None
    out: list[str] = []
    for item in cast(list[object], value):
        if not isinstance(item, str) or not item.strip():
            return None
        out.append(item)
    return out
