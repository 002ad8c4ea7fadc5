"""
Color-value detection for captured text.

Matching is structural only: a hex literal of the right length, or a
color function with the right number of comma-separated arguments.
Argument values are not range checked, so ``rgb(999, -1, x)`` is still
a color.
"""

import string

from .types import ContentVariant, Tag

_HEX_DIGITS = frozenset(string.hexdigits)
_HEX_LENGTHS = (3, 6, 8)

# Function prefix -> required argument count. Longer prefixes first so
# "rgba(" is not mistaken for "rgb(".
_COLOR_FUNCTIONS = (
    ("rgba(", 4),
    ("hsla(", 4),
    ("rgb(", 3),
    ("hsl(", 3),
)


def _is_hex_color(text: str) -> bool:
    if not text.startswith("#"):
        return False
    digits = text[1:]
    return len(digits) in _HEX_LENGTHS and all(c in _HEX_DIGITS for c in digits)


def _is_function_color(text: str) -> bool:
    lower = text.lower()
    for prefix, arity in _COLOR_FUNCTIONS:
        if not lower.startswith(prefix):
            continue
        end = lower.rfind(")")
        if end < len(prefix) - 1:
            return False
        inner = lower[len(prefix):end]
        parts = [p.strip() for p in inner.split(",")]
        return len(parts) == arity
    return False


def is_color(text: str) -> bool:
    """
    Check whether text is a color literal.

    Supported forms (function names are case-insensitive):
    - ``#RGB``, ``#RRGGBB``, ``#RRGGBBAA``
    - ``rgb(r, g, b)`` / ``rgba(r, g, b, a)``
    - ``hsl(h, s, l)`` / ``hsla(h, s, l, a)``
    """
    text = text.strip()
    return _is_hex_color(text) or _is_function_color(text)


def classify(text: str) -> tuple[ContentVariant, list[Tag]]:
    """Decide between COLOR and TEXT for captured text, with its tag set."""
    if is_color(text):
        return ContentVariant.COLOR, [Tag.COLOR]
    return ContentVariant.TEXT, [Tag.TEXT]
