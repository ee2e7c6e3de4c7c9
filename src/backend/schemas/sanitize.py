"""
HTML sanitization for user-supplied free text.

Question and option text is stored escaped and later rendered inside poll
lists, so escaping happens once, before storage. Already-escaped entities are
left alone, which makes `sanitize_html` idempotent.
"""

import re
from typing import Iterable, Optional

_ESCAPES = {
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "&": "&amp;",
}

# A bare "&" that does not already start a character reference
_UNSAFE = re.compile(r"[<>\"']|&(?!(?:amp|lt|gt|quot|apos|#x[0-9a-fA-F]+|#[0-9]+);)")


def _escape(match: re.Match) -> str:
    return _ESCAPES[match.group()[0]]


def _truncate(value: str, max_length: int) -> str:
    """Cut to max_length without splitting a character reference."""
    cut = value[:max_length]
    amp = cut.rfind("&")
    if amp != -1 and ";" not in cut[amp:]:
        cut = cut[:amp]
    return cut.rstrip()


def sanitize_html(value: str, max_length: Optional[int] = None) -> str:
    """
    Escape `< > " ' &`, trim surrounding whitespace and cap the length.

    sanitize_html(sanitize_html(x)) == sanitize_html(x) for any x.
    """
    escaped = _UNSAFE.sub(_escape, value).strip()
    if max_length is not None and len(escaped) > max_length:
        escaped = _truncate(escaped, max_length)
    return escaped


def sanitize_array(values: Iterable[str], max_length: Optional[int] = None) -> list[str]:
    """Sanitize every item and drop the ones left empty."""
    sanitized = (sanitize_html(v, max_length) for v in values)
    return [v for v in sanitized if v]
