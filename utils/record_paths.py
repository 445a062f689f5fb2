"""
Helpers for reading nested supplier records by dotted path.

Supplier APIs nest values ("variants.0.price", "brand.name"). A key that
exists verbatim always wins over the dotted interpretation.
"""

from typing import Any

MISSING = object()


def get_path(data: Any, path: str, default: Any = MISSING) -> Any:
    """
    Read a value by exact key, falling back to a dotted path.

    - get_path({"a.b": 1}, "a.b") → 1
    - get_path({"a": {"b": 2}}, "a.b") → 2
    - get_path({"v": [{"p": 3}]}, "v.0.p") → 3

    Returns `default` (MISSING unless given) when the path does not resolve.
    """
    if isinstance(data, dict) and path in data:
        return data[path]

    current = data
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default

    return current


def flatten_keys(data: dict, prefix: str = "") -> list[str]:
    """
    List every leaf path of a nested record.

    Lists of objects are described by their first element ("variants.0.sku");
    lists of scalars are leaves.
    """
    keys = []
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            keys.extend(flatten_keys(value, f"{path}."))
        elif isinstance(value, list) and value and isinstance(value[0], dict):
            keys.extend(flatten_keys(value[0], f"{path}.0."))
        else:
            keys.append(path)
    return keys
