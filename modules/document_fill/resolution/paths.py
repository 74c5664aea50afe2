"""
Dotted/bracket path lookup over records, dicts and lists.

``boardCertifications[1].board`` and ``specialties[0]`` are supported.
Keys match on either spelling (``lastName`` or ``last_name``).
"""

import re
from typing import Any, List, Mapping, Sequence, Union

from pydantic import BaseModel
from pydantic.alias_generators import to_camel, to_snake


class _Missing:
    """Sentinel for data that is absent from the context."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

_TOKEN_RE = re.compile(r"([^.\[\]]+)|\[\s*(-?\d+)\s*\]|\[\s*['\"]([^'\"]*)['\"]\s*\]")


def parse_path(path: str) -> List[Union[str, int]]:
    """Split a path into string keys and integer indexes."""
    tokens: List[Union[str, int]] = []
    for match in _TOKEN_RE.finditer(path or ""):
        key, index, quoted = match.groups()
        if index is not None:
            tokens.append(int(index))
        elif quoted is not None:
            tokens.append(quoted)
        else:
            key = key.strip()
            if key:
                tokens.append(key)
    return tokens


def is_missing(value: Any) -> bool:
    """Absent, None and empty strings all count as no data."""
    return value is MISSING or value is None or (isinstance(value, str) and value == "")


def _key_variants(key: str) -> List[str]:
    variants = [key]
    for candidate in (to_snake(key), to_camel(key)):
        if candidate not in variants:
            variants.append(candidate)
    return variants


def _lookup_model(obj: BaseModel, key: str) -> Any:
    fields = type(obj).model_fields
    for candidate in _key_variants(key):
        if candidate in fields:
            return getattr(obj, candidate)
    for name, info in fields.items():
        if info.alias == key:
            return getattr(obj, name)
    extra = obj.model_extra or {}
    for candidate in _key_variants(key):
        if candidate in extra:
            return extra[candidate]
    return MISSING


def _lookup_key(obj: Any, key: Union[str, int]) -> Any:
    if obj is None or obj is MISSING:
        return MISSING

    if isinstance(key, int):
        if isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
            try:
                return obj[key]
            except IndexError:
                return MISSING
        return MISSING

    if isinstance(obj, BaseModel):
        return _lookup_model(obj, key)

    if isinstance(obj, Mapping):
        for candidate in _key_variants(key):
            if candidate in obj:
                return obj[candidate]
        return MISSING

    # Numeric key on a list (``providers.0``)
    if key.isdigit() and isinstance(obj, Sequence) and not isinstance(obj, (str, bytes)):
        return _lookup_key(obj, int(key))

    for candidate in _key_variants(key):
        if not candidate.startswith("_") and hasattr(obj, candidate):
            return getattr(obj, candidate)
    return MISSING


def get_path(obj: Any, path: str) -> Any:
    """
    Resolve ``path`` against ``obj``.

    Returns MISSING when any segment is absent; never raises for missing
    data.
    """
    tokens = parse_path(path)
    if not tokens:
        return MISSING

    value = obj
    for token in tokens:
        value = _lookup_key(value, token)
        if value is MISSING or value is None:
            return MISSING
    return value


def strip_prefix(path: str, prefix: str) -> str:
    """Drop a leading ``prefix.`` from ``path``."""
    if path and path.startswith(f"{prefix}."):
        return path[len(prefix) + 1:]
    return path
