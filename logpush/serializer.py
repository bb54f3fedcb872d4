"""Value serializer — turns arbitrary runtime values into readable log text.

Top-level values are rendered as plain text suitable for joining into a
single message line. Composite values are rendered as compact JSON, with
well-known types (errors, dates, regexes, URLs, mappings, sets, HTTP
requests and responses) converted to readable forms on the way.
"""

import dataclasses
import datetime
import email.utils
import json
import math
import re
import traceback
from collections.abc import Mapping
from enum import Enum
from numbers import Number
from typing import Any, Iterable
from urllib.parse import ParseResult, SplitResult

import httpx

FN_PLACEHOLDER = "[fn()]"
EMPTY_PLACEHOLDER = "{}"

_REGEX_FLAGS = (
    (re.IGNORECASE, "i"),
    (re.MULTILINE, "m"),
    (re.DOTALL, "s"),
    (re.VERBOSE, "x"),
    (re.ASCII, "a"),
)

_URL_TYPES = (ParseResult, SplitResult, httpx.URL)

# Fetch API defaults, reported for requests since httpx has no equivalent
_REQUEST_DEFAULTS = {
    "referrer": "about:client",
    "credentials": "same-origin",
    "mode": "cors",
}


def format_number(value: Number) -> str:
    """Decimal string form of a number; integral floats drop the ``.0``."""
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
    return str(value)


def utc_string(value: datetime.date) -> str:
    """RFC 1123 form in UTC, e.g. ``Sun, 18 Oct 2026 12:00:00 GMT``.

    Naive datetimes are taken as local time; plain dates as midnight UTC.
    """
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime(value.year, value.month, value.day, tzinfo=datetime.timezone.utc)
    return email.utils.format_datetime(value.astimezone(datetime.timezone.utc), usegmt=True)


def _pattern_source(pattern: re.Pattern) -> str:
    source = pattern.pattern
    if isinstance(source, bytes):
        return source.decode("utf-8", "replace")
    return source


def regex_literal(pattern: re.Pattern) -> str:
    """Full literal form of a compiled pattern, e.g. ``/a/i``."""
    flags = "".join(char for flag, char in _REGEX_FLAGS if pattern.flags & flag)
    return f"/{_pattern_source(pattern)}/{flags}"


def url_href(value) -> str:
    if isinstance(value, httpx.URL):
        return str(value)
    return value.geturl()


def _stack(error: BaseException):
    if error.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def format_error(error: BaseException) -> str:
    stack = _stack(error)
    if stack:
        return stack.rstrip("\n") + "\n"
    name = type(error).__name__ or "Error"
    return f"{name}: '{error}'"


def stringify_arg(item: Any, nested: bool = False) -> str:
    """Render one value as text for a console-style log line."""
    if isinstance(item, str):
        return f"'{item}'" if nested else item
    if isinstance(item, bool):
        return "true" if item else "false"
    if isinstance(item, Enum):
        return str(item)
    if isinstance(item, Number):
        return format_number(item)
    if callable(item):
        return FN_PLACEHOLDER
    return stringify_object_arg(item)


def stringify_arg_list(args: Iterable[Any]) -> str:
    """Render positional arguments as one space-separated message."""
    return " ".join(stringify_arg(item) for item in args)


def stringify_object_arg(value: Any) -> str:
    """Render a composite value. Never raises; unserializable values give ``{}``."""
    try:
        if isinstance(value, BaseException):
            return format_error(value)

        if isinstance(value, datetime.date):
            return f"'{utc_string(value)}'"

        if isinstance(value, re.Pattern):
            return f"'{regex_literal(value)}'"

        if isinstance(value, _URL_TYPES):
            return f"'{url_href(value)}'"

        return json.dumps(
            value,
            default=stringify_object_replacer,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except Exception:
        return EMPTY_PLACEHOLDER


def _headers_dict(headers) -> dict:
    if isinstance(headers, httpx.Headers):
        return dict(headers.multi_items())
    return dict(headers)


def stringify_object_replacer(value: Any) -> Any:
    """``json.dumps`` default hook for every value json cannot encode itself.

    Raises TypeError for values that have no loggable form, which makes the
    enclosing :func:`stringify_object_arg` fall back to ``{}``.
    """
    if isinstance(value, BaseException):
        return {"message": str(value), "stack": _stack(value), "type": type(value).__name__}

    if isinstance(value, (httpx.Headers, httpx.QueryParams)):
        return dict(value.multi_items())

    if isinstance(value, Mapping):
        return {str(key): item for key, item in value.items()}

    if isinstance(value, datetime.date):
        return utc_string(value)

    if isinstance(value, re.Pattern):
        return _pattern_source(value)

    if isinstance(value, (set, frozenset)):
        return list(value)

    if isinstance(value, _URL_TYPES):
        return url_href(value)

    # Never touch .content / .read(): the body may be a single-use stream.
    if isinstance(value, httpx.Request):
        return {
            "url": str(value.url),
            "method": value.method,
            "headers": _headers_dict(value.headers),
            "referrer": value.headers.get("referer", _REQUEST_DEFAULTS["referrer"]),
            "credentials": _REQUEST_DEFAULTS["credentials"],
            "mode": _REQUEST_DEFAULTS["mode"],
        }

    if isinstance(value, httpx.Response):
        return {
            "status": value.status_code,
            "headers": _headers_dict(value.headers),
            "type": "default",
        }

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, Number):
        return format_number(value)

    items = getattr(value, "items", None)
    if callable(items) and not isinstance(value, type):
        return dict(items())

    if callable(value):
        return None

    if dataclasses.is_dataclass(value):
        return {field.name: getattr(value, field.name) for field in dataclasses.fields(value)}

    attrs = getattr(value, "__dict__", None)
    if isinstance(attrs, dict):
        return {key: item for key, item in attrs.items() if not key.startswith("_")}

    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
