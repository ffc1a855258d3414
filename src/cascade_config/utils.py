"""Utility functions for cascade-config."""

import copy
import math
import os
import pwd
from pathlib import Path
from typing import Any

from .exceptions import InvalidValueError
from .models import Scalar

_FORBIDDEN_KEY_PREFIXES = ("[", ";", "#")


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries with overlay precedence.

    Recursively merges nested dictionaries. Non-dict values in overlay
    completely replace corresponding values in base, so a scalar in overlay
    replaces a whole section in base and vice versa.

    Args:
        base: Base dictionary
        overlay: Overlay dictionary (takes precedence)

    Returns:
        New merged dictionary. No nested dictionary of the result is shared
        with base or overlay, so the result can be mutated freely.

    Examples:
        >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
        >>> overlay = {"b": {"c": 20}, "e": 5}
        >>> deep_merge(base, overlay)
        {'a': 1, 'b': {'c': 20, 'd': 3}, 'e': 5}

        >>> deep_merge({}, {"a": 1})
        {'a': 1}

        >>> deep_merge({"a": 1}, {})
        {'a': 1}
    """
    result = copy.deepcopy(base)

    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Both base and overlay have dict at this key - recurse
            result[key] = deep_merge(result[key], value)
        else:
            # Overlay wins - replace completely
            result[key] = copy.deepcopy(value)

    return result


def get_home() -> Path:
    """Determine the home directory of the current user.

    Uses the HOME environment variable. When it is unset or empty, falls
    back to the home directory registered for the current uid.

    Returns:
        Home directory path
    """
    home = os.environ.get("HOME", "")
    if not home:
        home = pwd.getpwuid(os.getuid()).pw_dir
    return Path(home)


def is_scalar(value: Any) -> bool:
    """Check whether value can be stored as a configuration leaf.

    Floats must be finite, since the INI format has no literal for NaN or
    infinity.
    """
    if isinstance(value, float):
        return math.isfinite(value)
    return isinstance(value, (bool, int, str))


def to_scalar(value: Scalar) -> Scalar:
    """Convert a scalar of a subclass (IntEnum, StrEnum, ...) to its exact built-in type.

    Args:
        value: Value already accepted by is_scalar

    Returns:
        Equal value whose type is exactly bool, int, float or str
    """
    if isinstance(value, bool):
        return bool(value)
    if isinstance(value, int):
        return int.__index__(value)
    if isinstance(value, float):
        return float.__float__(value)
    return str.__str__(value)


def same_scalar(old: Any, new: Any) -> bool:
    """Compare two scalars by type and value (``1``, ``1.0`` and ``True`` differ)."""
    return type(old) is type(new) and old == new


def validate_key(key: Any) -> str:
    """Ensure key can be written back as an INI key or section name.

    Args:
        key: Candidate key

    Returns:
        The key, unchanged

    Raises:
        InvalidValueError: If key is not a non-empty string, contains ``=``
            or a line break, has surrounding whitespace, or starts with a
            comment or section marker
    """
    if not isinstance(key, str) or not key:
        raise InvalidValueError(f"Key must be a non-empty string, got {key!r}")
    if key != key.strip():
        raise InvalidValueError(f"Key must not have surrounding whitespace: {key!r}")
    if "=" in key or "\n" in key or "\r" in key:
        raise InvalidValueError(f"Key must not contain '=' or line breaks: {key!r}")
    if key.startswith(_FORBIDDEN_KEY_PREFIXES):
        raise InvalidValueError(f"Key must not start with '[', ';' or '#': {key!r}")
    return key
