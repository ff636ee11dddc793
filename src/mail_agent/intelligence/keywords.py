"""Frequency based keyword extraction used when the LLM is unavailable."""

from __future__ import annotations

from collections import Counter
from collections.abc import Collection

from mail_agent.core.config import DEFAULT_STOP_WORDS
from mail_agent.core.models import Keyword

from .text import percentage, tokenize

STOP_WORDS: frozenset[str] = frozenset(DEFAULT_STOP_WORDS)
MIN_TOKEN_LENGTH = 2


def extract_keywords(
    text: object,
    top_k: int,
    *,
    stop_words: Collection[str] = STOP_WORDS,
) -> list[Keyword]:
    """Return the ``top_k`` most frequent tokens of ``text`` scored 0-100.

    The most frequent token always scores 100; ties keep the order in which
    tokens first appear.
    """
    if top_k <= 0:
        return []

    frequencies = Counter(
        token
        for token in tokenize(text)
        if len(token) >= MIN_TOKEN_LENGTH and token not in stop_words
    )
    if not frequencies:
        return []

    max_freq = max(frequencies.values())
    scored = [
        Keyword(text=token, score=percentage(freq, max_freq))
        for token, freq in frequencies.items()
    ]
    scored.sort(key=lambda keyword: keyword.score, reverse=True)
    return scored[:top_k]


__all__ = ["STOP_WORDS", "extract_keywords"]
