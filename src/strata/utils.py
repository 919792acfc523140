"""Various utilities."""

import json
import re
from collections.abc import Iterable
from typing import Any

import Levenshtein

SENSITIVE_PATTERNS = (
    "password",
    "secret",
    "key",
    "token",
    "credential",
    "api_key",
    "apikey",
)
"""Fragments of key names whose values should not appear in logs."""

_camel_re = re.compile(r"[_-](.)")
_int_re = re.compile(r"^-?\d+$")
_float_re = re.compile(r"^-?\d*\.\d+$")


def did_you_mean(suggestions: Iterable[str], wrong_key: str) -> str | None:
    """Return element of `suggestions` closest to `wrong_key`."""
    min_distance = 9999
    closest_key = None
    for suggestion in suggestions:
        distance = Levenshtein.distance(suggestion, wrong_key)
        if distance < min_distance:
            min_distance = distance
            closest_key = suggestion

    return closest_key


def to_camel_case(key: str) -> str:
    """Convert ``SOME_KEY`` or ``some-key`` to ``someKey``."""
    return _camel_re.sub(lambda m: m.group(1).upper(), key.lower())


def is_sensitive(key: str) -> bool:
    """Return True if `key` looks like it holds a secret."""
    lower = key.lower()
    return any(pattern in lower for pattern in SENSITIVE_PATTERNS)


def mask_value(key: str, value: Any) -> Any:
    """Return `value`, or a mask if `key` is sensitive."""
    if is_sensitive(key):
        return "***"
    return value


def guess_value(value: Any) -> Any:
    """Convert a string to the python value it most likely represents.

    Booleans (``true`` / ``false``), integers, decimals, and JSON objects or arrays
    are converted. Anything else is returned unchanged.
    """
    if not isinstance(value, str):
        return value

    lower = value.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if _int_re.match(value):
        return int(value)
    if _float_re.match(value):
        return float(value)
    if value.startswith(("{", "[")):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value
