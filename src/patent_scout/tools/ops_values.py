"""
Helpers for the OPS JSON rendering of XML.

OPS converts its XML payloads to JSON mechanically, which means:
- every text leaf is either a bare string or an object holding the text
  under `$` (attributes appear as `@name` keys next to it);
- every repeatable element is a bare object when it occurs once and an
  array otherwise, and is simply missing when it does not occur.

All extraction code goes through these functions instead of checking shapes
ad hoc.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

VALUE_KEY = "$"
LANGUAGE_KEYS = ("@lang", "@language")


def as_list(node: Any) -> List[Any]:
    """Normalize a missing / scalar / array field to a list."""
    if node is None:
        return []
    if isinstance(node, list):
        return [item for item in node if item is not None]
    return [node]


def text_value(node: Any) -> Optional[str]:
    """
    Resolve a leaf to its stripped text.

    Accepts a bare string, a `{"$": "..."}` holder, or a list of either (the
    first resolvable entry wins). Returns None when nothing resolves.
    """
    if isinstance(node, str):
        text = node.strip()
        return text or None
    if isinstance(node, dict):
        return text_value(node.get(VALUE_KEY))
    if isinstance(node, list):
        for item in node:
            text = text_value(item)
            if text:
                return text
    return None


def child(node: Any, *path: str) -> Any:
    """Walk nested objects by key; returns None as soon as a step is missing."""
    current = node
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def language_of(node: Any) -> Optional[str]:
    """Return the lower-cased language attribute of an entry, if any."""
    if not isinstance(node, dict):
        return None
    for key in LANGUAGE_KEYS:
        value = node.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip().lower()
    return None


def by_language(candidates: List[Any], preferred: str = "en") -> List[Any]:
    """Order entries tagged with `preferred` first; the rest keep document order."""
    first = [candidate for candidate in candidates if language_of(candidate) == preferred]
    rest = [candidate for candidate in candidates if language_of(candidate) != preferred]
    return first + rest


def attribute(node: Any, name: str) -> Optional[str]:
    """Read an `@attribute` from an object node."""
    if not isinstance(node, dict):
        return None
    value = node.get(f"@{name}")
    return str(value) if value is not None else None


def normalize_ops_date(value: Optional[str]) -> Optional[str]:
    """Normalize `YYYYMMDD` to `YYYY-MM-DD`; other values pass through."""
    if not value:
        return None
    if len(value) == 8 and value.isdigit():
        return f"{value[0:4]}-{value[4:6]}-{value[6:8]}"
    return value


def world_patent_data(payload: Any) -> Dict[str, Any]:
    """Return the `ops:world-patent-data` root object (empty dict if absent)."""
    root = child(payload, "ops:world-patent-data")
    return root if isinstance(root, dict) else {}
