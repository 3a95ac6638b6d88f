"""Duplicate detection for product records.

Two policies exist side by side and are deliberately not unified:

* ``MatchMode.STRICT`` - a retailer's own flyer. Same normalized name AND the
  same category, subcategory and placement keys (compared exactly). Two
  "Mlieko" entries in different aisles are different products.
* ``MatchMode.LOOSE`` - the country master catalog. Same normalized name,
  with internal whitespace collapsed; hierarchy placement is ignored.
"""

from enum import Enum
from typing import Iterable, Optional, Sequence

from flyer.models import ProductRecord
from flyer.normalize import normalize_name

__all__ = ["MatchMode", "names_match", "is_duplicate", "find_duplicate"]


class MatchMode(str, Enum):
    STRICT = "strict"
    LOOSE = "loose"


def _name_key(name: str, mode: MatchMode) -> str:
    return normalize_name(name, collapse_spaces=mode is MatchMode.LOOSE)


def names_match(a: ProductRecord, b: ProductRecord, mode: MatchMode = MatchMode.STRICT) -> bool:
    """Whether two records are the same product under ``mode``."""
    if _name_key(a.name, mode) != _name_key(b.name, mode):
        return False
    if mode is MatchMode.LOOSE:
        return True
    return a.hierarchy == b.hierarchy


def find_duplicate(
    existing: Sequence[ProductRecord],
    candidate: ProductRecord,
    mode: MatchMode = MatchMode.STRICT,
) -> Optional[int]:
    """Index of the first record in ``existing`` matching ``candidate``, or None."""
    for index, record in enumerate(existing):
        if names_match(record, candidate, mode):
            return index
    return None


def is_duplicate(
    existing: Iterable[ProductRecord],
    candidate: ProductRecord,
    mode: MatchMode = MatchMode.STRICT,
) -> bool:
    """Pure predicate: does ``candidate`` already exist in ``existing``?

    Neither argument is modified.
    """
    return find_duplicate(list(existing), candidate, mode) is not None
