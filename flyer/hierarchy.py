"""Locating placements inside the category -> subcategory -> placement tree.

Hierarchy keys are canonical IDs, so lookups compare raw strings exactly; no
normalization is applied here (that is only for product names).
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from flyer.config import HIERARCHY_PATH
from flyer.errors import HierarchyNotFoundError, InvalidDocumentError
from flyer.models import FlyerDocument, PlacementNode

__all__ = [
    "PlacementRef",
    "locate",
    "path_key",
    "build_path_index",
    "iter_placements",
    "template_from",
    "load_template",
]

PATH_SEPARATOR = "||"


@dataclass(frozen=True)
class PlacementRef:
    """Position of a placement inside a document (indices at each level)."""

    category_index: int
    subcategory_index: int
    placement_index: int
    category: str
    subcategory: str
    placement: str

    @property
    def key(self) -> str:
        return path_key(self.category, self.subcategory, self.placement)

    def node(self, document: FlyerDocument) -> PlacementNode:
        """The placement node this reference points at in ``document``."""
        category = document.categories[self.category_index]
        subcategory = category.subcategories[self.subcategory_index]
        return subcategory.placements[self.placement_index]


def path_key(category: str, subcategory: str, placement: str) -> str:
    """Flat index key for a hierarchy path (``"cat||sub||placement"``)."""
    return PATH_SEPARATOR.join((category, subcategory, placement))


def locate(
    document: FlyerDocument,
    category: str,
    subcategory: str,
    placement: str,
) -> PlacementRef:
    """Find the placement for a category/subcategory/placement triple.

    Three sequential exact-match lookups; the first matching sibling wins.
    Blank keys are looked up literally and simply fail to match.

    Raises:
        HierarchyNotFoundError: With ``level`` set to the first level that
            did not resolve.
    """
    for ci, category_node in enumerate(document.categories):
        if category_node.name != category:
            continue
        for si, subcategory_node in enumerate(category_node.subcategories):
            if subcategory_node.name != subcategory:
                continue
            for pi, placement_node in enumerate(subcategory_node.placements):
                if placement_node.name == placement:
                    return PlacementRef(ci, si, pi, category, subcategory, placement)
            raise HierarchyNotFoundError("placement", placement)
        raise HierarchyNotFoundError("subcategory", subcategory)
    raise HierarchyNotFoundError("category", category)


def iter_placements(document: FlyerDocument) -> Iterator[PlacementRef]:
    """Yield a reference for every placement in document order."""
    for ci, category in enumerate(document.categories):
        for si, subcategory in enumerate(category.subcategories):
            for pi, placement in enumerate(subcategory.placements):
                yield PlacementRef(ci, si, pi, category.name, subcategory.name, placement.name)


def build_path_index(document: FlyerDocument) -> Dict[str, PlacementRef]:
    """Map ``path_key`` -> reference for O(1) repeated lookups.

    Keeps the first occurrence of a path, matching what ``locate`` returns.
    """
    index: Dict[str, PlacementRef] = {}
    for ref in iter_placements(document):
        index.setdefault(ref.key, ref)
    return index


def template_from(document: FlyerDocument) -> FlyerDocument:
    """Copy of ``document`` with every placement's product list emptied."""
    template = document.copy()
    for _, _, placement in template.walk():
        placement.products = []
    return template


def load_template(path: Optional[Union[str, Path]] = None) -> FlyerDocument:
    """Load the hierarchy template JSON.

    Args:
        path: Template file (default: ``HIERARCHY_PATH``).

    Raises:
        InvalidDocumentError: If the file is not valid JSON or not a
            category array.
    """
    template_path = Path(path or HIERARCHY_PATH)
    try:
        data = json.loads(template_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InvalidDocumentError(f"Hierarchy template is not valid JSON: {e}", path=str(template_path)) from e
    return template_from(FlyerDocument.from_json(data))
