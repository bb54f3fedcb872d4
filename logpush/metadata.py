"""Normalize per-call metadata into string-only mappings."""

from numbers import Number
from typing import Mapping, Optional, Union

from logpush.serializer import format_number

MetadataValue = Union[str, int, float, bool, None]


def _transform(value) -> Optional[str]:
    # bool is a subclass of int, so it has to be checked first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Number):
        return format_number(value)
    return None


def normalize_metadata(init: Optional[Mapping[str, MetadataValue]]) -> Optional[dict]:
    """Normalize a metadata mapping into ``dict[str, str]``.

    Strings are trimmed, numbers and booleans are stringified. Keys whose
    value is None, of an unsupported type, or a string that trims to empty
    are dropped. Returns None when there is no input at all.
    """
    if not init:
        return None

    normalized = {}
    for key, value in init.items():
        transformed = _transform(value)
        if transformed:
            normalized[str(key)] = transformed
    return normalized
