# price_compare/filters/tokenizer.py

"""Shared text normalisation used by relevance scoring and matching."""

import re

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

STOP_WORDS: frozenset[str] = frozenset(
    {
        "for", "with", "and", "the", "a", "an", "of", "to", "in", "on",
        "by", "from", "new", "latest", "best", "buy", "online", "india",
        "price", "sale", "deal", "offer", "discount", "combo", "pack",
        "set", "piece", "is", "it", "at", "or", "be", "this", "that",
        "was", "are", "were", "has", "have", "had", "do", "does", "did",
        "will", "would", "could", "should", "may", "might", "can",
        "shall", "get", "got", "make",
    }
)


def normalize_text(text: object) -> str:
    """Lowercase, replace non-alphanumerics with spaces, collapse runs."""
    lowered = str(text).lower()
    spaced = _NON_ALNUM_RE.sub(" ", lowered)
    return _WHITESPACE_RE.sub(" ", spaced).strip()


def tokenize(text: object) -> list[str]:
    """Split normalised text, dropping 1-char tokens and stop words."""
    return [
        token
        for token in normalize_text(text).split(" ")
        if len(token) > 1 and token not in STOP_WORDS
    ]
