"""Helpers for reading source payloads (plain JSON trees)."""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

MAX_SEARCH_DEPTH = 8


def extract_asset_items(payload: Any, *keys: str) -> list[dict[str, Any]]:
    """
    Find the itemized asset list in a payload.

    Each key is tried in order. For a key, the payload is searched depth
    first: the key at the current level, then nested objects and objects
    inside arrays. The first non-empty list of objects wins. Non-object
    list elements are dropped and the returned items are shallow copies.

    Returns:
        The items found, or an empty list
    """
    if not isinstance(payload, Mapping):
        return []

    for key in keys:
        items = _search(payload, key, 0)
        if items:
            return items
    return []


def _search(node: Any, key: str, depth: int) -> list[dict[str, Any]]:
    if depth > MAX_SEARCH_DEPTH:
        return []

    if isinstance(node, Mapping):
        items = _object_items(node.get(key))
        if items:
            return items
        children = node.values()
    elif isinstance(node, list):
        children = node
    else:
        return []

    for child in children:
        if isinstance(child, (Mapping, list)):
            found = _search(child, key, depth + 1)
            if found:
                return found
    return []


def _object_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [dict(item) for item in value if isinstance(item, Mapping)]


def to_decimal(value: Any) -> Decimal | None:
    """
    Parse a JSON scalar into a Decimal.

    Returns None for null or blank values.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Not a number: {value!r}") from e
        if not parsed.is_finite():
            raise ValueError(f"Not a finite number: {value!r}")
        return parsed
    raise ValueError(f"Not a number: {value!r}")
