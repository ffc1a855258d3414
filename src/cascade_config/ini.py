"""INI reading and writing for cascade-config.

Files hold optional top-level ``key = value`` lines followed by ``[section]``
blocks. Values are typed on read: booleans, integers and floats are
recognized, everything else is a string. On write, strings are always
quoted so they come back as strings.
"""

import configparser
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .exceptions import ConfigFileError
from .exceptions import InvalidValueError
from .exceptions import ParseError
from .models import ConfigNode
from .models import Scalar

# Header injected in front of the text so keys before the first section parse
_ROOT_SECTION = "\x00root"
# Never appears in real files; keeps configparser's DEFAULT inheritance out of the way
_DEFAULT_SECTION = "\x00defaults"

_TRUE_WORDS = frozenset({"true", "on", "yes"})
_FALSE_WORDS = frozenset({"false", "off", "no", "none"})
_NULL_WORD = "null"

_INT_RE = re.compile(r"[-+]?(?:0|[1-9][0-9]*)")
_FLOAT_RE = re.compile(r"[-+]?(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?|[-+]?[0-9]+[eE][-+]?[0-9]+")

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {value[1]: key for key, value in _ESCAPES.items()}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def _make_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        delimiters=("=",),
        comment_prefixes=(";", "#"),
        strict=False,
        empty_lines_in_values=False,
        interpolation=None,
        default_section=_DEFAULT_SECTION,
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    return parser


def _unescape(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), text)


def _escape(text: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in text)


def parse_scalar(raw: str) -> Scalar:
    """Convert a raw INI value to a typed scalar.

    Args:
        raw: Value text as it appears after the ``=``

    Returns:
        Typed value. Double-quoted text is a string with escapes decoded,
        single-quoted text is a string taken literally.

    Raises:
        ParseError: If a quoted value is not terminated
    """
    value = raw.strip()

    if value[:1] in ('"', "'"):
        quote = value[0]
        if len(value) < 2 or value[-1] != quote:
            raise ParseError(f"Unterminated quoted value: {raw!r}")
        inner = value[1:-1]
        return _unescape(inner) if quote == '"' else inner

    lowered = value.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    if lowered == _NULL_WORD:
        return ""
    if _INT_RE.fullmatch(value):
        return int(value)
    if _FLOAT_RE.fullmatch(value):
        return float(value)
    return value


def format_scalar(value: Scalar) -> str:
    """Render a scalar so that parse_scalar returns an equal value of the same type."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return int.__repr__(value)
    if isinstance(value, float):
        return float.__repr__(value)
    return f'"{_escape(str.__str__(value))}"'


def parse(text: str) -> ConfigNode:
    """Parse INI text into a configuration node.

    Args:
        text: INI source

    Returns:
        Mapping of top-level keys to scalars and of section names to
        mappings of scalars

    Raises:
        ParseError: If text is not valid INI
    """
    parser = _make_parser()
    try:
        parser.read_string(f"[{_ROOT_SECTION}]\n{text}")
    except configparser.Error as e:
        raise ParseError(f"Malformed configuration: {e}") from e

    node: ConfigNode = {}
    for section in parser.sections():
        values = {key: parse_scalar(raw) for key, raw in parser.items(section, raw=True)}
        if section == _ROOT_SECTION:
            node.update(values)
        else:
            node[section] = values
    return node


def parse_file(path: Path) -> ConfigNode:
    """Read and parse an INI file.

    Raises:
        ConfigFileError: If the file cannot be read
        ParseError: If the file is not UTF-8 or not valid INI
    """
    try:
        text = Path(path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Configuration {path} is not valid UTF-8: {e}") from e
    except OSError as e:
        raise ConfigFileError(f"Failed to read configuration from {path}: {e}") from e

    try:
        return parse(text)
    except ParseError as e:
        raise ParseError(f"{path}: {e}") from e


def serialize(node: Mapping[str, Any]) -> str:
    """Render a configuration node as INI text.

    Top-level scalars are written first, then one block per section, so
    that the output parses back to the same node.

    Args:
        node: Mapping of keys to scalars and sections

    Returns:
        INI text, empty for an empty node

    Raises:
        InvalidValueError: If a section contains another section
    """
    lines = [f"{key} = {format_scalar(value)}" for key, value in node.items() if not isinstance(value, dict)]

    for name, section in node.items():
        if not isinstance(section, dict):
            continue
        if lines:
            lines.append("")
        lines.append(f"[{name}]")
        for key, value in section.items():
            if isinstance(value, dict):
                raise InvalidValueError(f"Section '{name}' cannot contain nested section '{key}'")
            lines.append(f"{key} = {format_scalar(value)}")

    return "\n".join(lines) + "\n" if lines else ""
