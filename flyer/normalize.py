"""Name normalization for fuzzy product matching.

Folds Slovak, Czech and Polish (plus a few Nordic/German) letters to a
lowercase ASCII-comparable form so "Łosoś", "losos" and " LOSOS " compare
equal.
"""

import re
import unicodedata
from typing import Optional

__all__ = [
    "normalize_key",
    "tight_key",
    "normalize_name",
    "matches_search",
]

# Letters that canonical decomposition leaves alone
_FOLD_TABLE = str.maketrans({
    "ø": "o", "Ø": "O",
    "ł": "l", "Ł": "L",
    "đ": "d", "Đ": "D",
    "ß": "ss", "ẞ": "SS",
    "æ": "ae", "Æ": "AE",
    "œ": "oe", "Œ": "OE",
    "ı": "i",
})

_RX_COMBINING = re.compile("[\u0300-\u036f]")
_RX_NOT_ALNUM = re.compile(r"[^a-z0-9]")
_RX_MULTI_SPACE = re.compile(r"\s+")


def _fold(text: str) -> str:
    text = text.translate(_FOLD_TABLE)
    return _RX_COMBINING.sub("", unicodedata.normalize("NFD", text))


def normalize_key(text: Optional[str]) -> str:
    """Canonical comparison form: folded, diacritic-free, lowercase, trimmed.

    ``None`` and empty input give ``""``. Lowercasing can itself produce
    foldable characters (``"İ"`` becomes "i" plus a combining dot), so the
    fold runs again after it to keep the function idempotent.
    """
    if not text:
        return ""
    return _fold(_fold(str(text)).lower()).strip()


def tight_key(text: Optional[str]) -> str:
    """``normalize_key`` with everything outside ``[a-z0-9]`` removed.

    "Coca-Cola 1,5l" and "coca cola 15 l" both become "cocacola15l".
    """
    return _RX_NOT_ALNUM.sub("", normalize_key(text))


def normalize_name(text: Optional[str], collapse_spaces: bool = False) -> str:
    """Product-name key used by duplicate detection.

    Args:
        text: Raw product name.
        collapse_spaces: Also squeeze internal whitespace runs to one space
            (master-catalog comparisons tolerate sloppy manual spacing).
    """
    key = normalize_key(text)
    if collapse_spaces:
        key = _RX_MULTI_SPACE.sub(" ", key)
    return key


def matches_search(candidate: Optional[str], query: Optional[str]) -> bool:
    """Whether ``candidate`` matches a free-text search ``query``.

    Empty queries match everything. Otherwise the normalized query must be a
    substring of the normalized candidate, falling back to comparing the
    tight forms when punctuation or spacing differ.
    """
    q = normalize_key(query)
    if not q:
        return True
    if q in normalize_key(candidate):
        return True
    tight_q = tight_key(query)
    return bool(tight_q) and tight_q in tight_key(candidate)
