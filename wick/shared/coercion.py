"""
Conversion of command-line strings into WAMP payload values and back.

Each raw string is typed by the first rule that accepts it:
integer, float, boolean, JSON object, JSON array of objects, plain string.
Numbers and booleans are tried before JSON so that "42" stays an integer
instead of falling through to the string rule.
"""

from __future__ import annotations
import json
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

_INT_RE = re.compile(r'^[+-]?[0-9]+$')
_FLOAT_RE = re.compile(r'^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?$')

_TRUE_LITERALS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_LITERALS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def _parse_int(value: str) -> Optional[int]:
    if _INT_RE.match(value):
        return int(value)
    return None


def _parse_float(value: str) -> Optional[float]:
    if not _FLOAT_RE.match(value):
        return None
    number = float(value)
    # overflowing literals such as 1e999 are not valid payload numbers
    if math.isinf(number):
        return None
    return number


def _parse_bool(value: str) -> Optional[bool]:
    if value in _TRUE_LITERALS:
        return True
    if value in _FALSE_LITERALS:
        return False
    return None


def _parse_json(value: str) -> Any:
    try:
        return json.loads(value)
    except (ValueError, RecursionError):
        return None


def coerce_value(value: str) -> Any:
    """Type a single raw string. See the module docstring for the order."""
    number = _parse_int(value)
    if number is not None:
        return number

    real = _parse_float(value)
    if real is not None:
        return real

    flag = _parse_bool(value)
    if flag is not None:
        return flag

    document = _parse_json(value)
    if isinstance(document, dict):
        return document
    if isinstance(document, list) and all(isinstance(item, dict) for item in document):
        return document

    return value


def encode_args(raw: Optional[Sequence[str]]) -> List[Any]:
    """Type positional arguments, keeping their order. None gives []."""
    if not raw:
        return []
    return [coerce_value(value) for value in raw]


def encode_kwargs(raw: Optional[Mapping[str, str]]) -> Dict[str, Any]:
    """Type keyword argument values. None gives {}."""
    if not raw:
        return {}
    return {key: coerce_value(value) for key, value in raw.items()}


def to_json(value: Any) -> str:
    """Pretty JSON used for every value wick prints."""
    return json.dumps(value, indent=4, ensure_ascii=False, default=str)


def render(args: Optional[Sequence[Any]], kwargs: Optional[Mapping[str, Any]]) -> str:
    """
    Human-readable form of an event's or invocation's payload.

    Empty payloads print as the literal pair "args: []" / "kwargs: {}".
    Keyword order follows the mapping and is for display only.
    """
    args = list(args or [])
    kwargs = dict(kwargs or {})

    if not args and not kwargs:
        return "args: []\nkwargs: {}"

    lines = []
    if args:
        lines.append("args:")
        lines.append(to_json(args))
    if kwargs:
        lines.append("kwargs:")
        lines.append(to_json(kwargs))
    return "\n".join(lines)
