"""Text normalisation helpers shared by the local analysers."""

from __future__ import annotations

import math
import re

_HTML_TAG = re.compile(r"<[^>]*>")
# \w already covers Hangul under re.UNICODE; the explicit syllable range keeps
# Korean tokens intact regardless of how the word class is interpreted.
_NON_WORD = re.compile(r"[^\w가-힣]")
_WHITESPACE = re.compile(r"\s+")


def strip_html(text: str) -> str:
    """Remove anything that looks like an HTML tag."""
    return _HTML_TAG.sub("", text)


def tokenize(text: object) -> list[str]:
    """Lowercase ``text`` and split it into word tokens.

    Non-string input is treated as empty text.
    """
    if not isinstance(text, str) or not text:
        return []
    cleaned = _NON_WORD.sub(" ", strip_html(text).lower())
    return [token for token in _WHITESPACE.split(cleaned) if token]


def percentage(part: int | float, whole: int | float) -> int:
    """Return ``part / whole`` as a percentage rounded half up."""
    if whole <= 0:
        return 0
    return int(math.floor(part / whole * 100 + 0.5))


__all__ = ["percentage", "strip_html", "tokenize"]
