"""Merging products into flyer documents.

All operations are copy-then-swap: they work on a deep copy of the input and
either return the new document or raise, so a failed edit never leaves the
caller's document half-modified. Records are copied on the way in and never
aliased between documents.

Two strategies are kept separate:

* incremental (``merge_product`` / ``remove_product``) for editing a document
  that was loaded from a file or storage;
* full rebuild (``rebuild_document``) that projects the hierarchy template
  with the products collected during a session, used for clean exports.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from flyer.dedup import MatchMode, find_duplicate
from flyer.errors import ProductIndexError
from flyer.hierarchy import build_path_index, iter_placements, locate, path_key
from flyer.models import FlyerDocument, MasterCatalog, ProductRecord

__all__ = [
    "MergeOutcome",
    "OriginRef",
    "HierarchyEntry",
    "merge_product",
    "remove_product",
    "rebuild_document",
    "combine_with_loaded",
    "merge_into_catalog",
]

logger = logging.getLogger(__name__)

# ((category, subcategory, placement), product)
HierarchyEntry = Tuple[Tuple[str, str, str], ProductRecord]


class MergeOutcome(str, Enum):
    ADDED = "added"
    EXISTS = "exists"
    REPLACED = "replaced"
    MOVED = "moved"


@dataclass(frozen=True)
class OriginRef:
    """Where an edited product currently sits: placement path plus list index."""

    category: str
    subcategory: str
    placement: str
    index: int

    @property
    def hierarchy(self) -> Tuple[str, str, str]:
        return (self.category, self.subcategory, self.placement)


def _all_products(document: FlyerDocument) -> List[ProductRecord]:
    return [p for _, _, placement in document.walk() for p in placement.products]


def merge_product(
    document: FlyerDocument,
    candidate: ProductRecord,
    origin: Optional[OriginRef] = None,
    mode: MatchMode = MatchMode.STRICT,
) -> Tuple[FlyerDocument, MergeOutcome]:
    """Fold ``candidate`` into ``document``.

    Without ``origin`` the candidate is a new product: its placement is
    resolved from its own hierarchy keys, it is checked for duplicates
    (against that placement in strict mode, the whole document in loose
    mode) and appended to the end of the placement's list.

    With ``origin`` the candidate is an edit. If its hierarchy keys are
    unchanged the record at ``origin.index`` is replaced in place; otherwise
    it is moved to the end of the new placement. Edits are not re-checked for
    duplicates.

    Args:
        document: Document to merge into (left untouched).
        candidate: Product to add or the edited version of an existing one.
        origin: Coordinates of the product being edited.
        mode: Duplicate policy for new products.

    Returns:
        (new document, outcome). On ``EXISTS`` the new document has the same
        content as the input.

    Raises:
        HierarchyNotFoundError: Target (or origin) placement does not resolve.
        ProductIndexError: ``origin.index`` is out of range.
    """
    working = document.copy()
    record = candidate.copy()

    if origin is not None:
        origin_node = locate(working, *origin.hierarchy).node(working)
        if not 0 <= origin.index < len(origin_node.products):
            raise ProductIndexError(
                f"No product at index {origin.index} in {path_key(*origin.hierarchy)!r}"
            )

        if record.hierarchy == origin.hierarchy:
            origin_node.products[origin.index] = record
            return working, MergeOutcome.REPLACED

        # Resolve the target before touching the origin list.
        target_node = locate(working, *record.hierarchy).node(working)
        del origin_node.products[origin.index]
        target_node.products.append(record)
        return working, MergeOutcome.MOVED

    target_node = locate(working, *record.hierarchy).node(working)
    pool = target_node.products if mode is MatchMode.STRICT else _all_products(working)
    if find_duplicate(pool, record, mode) is not None:
        return working, MergeOutcome.EXISTS

    target_node.products.append(record)
    return working, MergeOutcome.ADDED


def remove_product(document: FlyerDocument, origin: OriginRef) -> Tuple[FlyerDocument, ProductRecord]:
    """Remove the product at ``origin``, keeping the order of its siblings.

    Returns:
        (new document, removed record)

    Raises:
        HierarchyNotFoundError: Origin placement does not resolve.
        ProductIndexError: ``origin.index`` is out of range.
    """
    working = document.copy()
    node = locate(working, *origin.hierarchy).node(working)
    if not 0 <= origin.index < len(node.products):
        raise ProductIndexError(f"No product at index {origin.index} in {path_key(*origin.hierarchy)!r}")
    removed = node.products.pop(origin.index)
    return working, removed


def rebuild_document(template: FlyerDocument, entries: Iterable[HierarchyEntry]) -> FlyerDocument:
    """Project ``template`` with each placement filled from ``entries``.

    Entries are grouped by their three-part path; each placement receives its
    group in entry order, or an empty list. The template's own products are
    ignored. Entries whose path is not in the template do not appear in the
    result (logged at WARNING).
    """
    grouped: Dict[str, List[ProductRecord]] = defaultdict(list)
    for hierarchy, product in entries:
        grouped[path_key(*hierarchy)].append(product)

    document = template.copy()
    placed = set()
    for ref in iter_placements(document):
        products = grouped.get(ref.key, [])
        ref.node(document).products = [p.copy() for p in products]
        if products:
            placed.add(ref.key)

    dropped = sum(len(v) for k, v in grouped.items() if k not in placed)
    if dropped:
        logger.warning(f"Rebuild dropped {dropped} product(s) whose placement is not in the template")
    return document


def combine_with_loaded(
    loaded: FlyerDocument,
    session_document: FlyerDocument,
) -> Tuple[FlyerDocument, List[ProductRecord]]:
    """Append a session's products to a previously loaded flyer.

    For every placement of ``loaded`` the session products filed under the
    same path are appended after the loaded ones. The loaded tree's shape is
    kept as is.

    Returns:
        (combined document, orphans) where orphans are session products whose
        path does not exist in ``loaded``.
    """
    combined = loaded.copy()
    index = build_path_index(combined)
    orphans: List[ProductRecord] = []

    for ref in iter_placements(session_document):
        products = ref.node(session_document).products
        if not products:
            continue
        target = index.get(ref.key)
        if target is None:
            orphans.extend(p.copy() for p in products)
            continue
        target.node(combined).products.extend(p.copy() for p in products)

    if orphans:
        logger.warning(f"{len(orphans)} session product(s) have no placement in the loaded flyer")
    return combined, orphans


def merge_into_catalog(catalog: MasterCatalog, candidate: ProductRecord) -> Tuple[MasterCatalog, MergeOutcome]:
    """Append ``candidate`` to a master catalog unless its name is already there.

    Uses loose matching against the whole flat list.
    """
    working = catalog.copy()
    if find_duplicate(working.products, candidate, MatchMode.LOOSE) is not None:
        return working, MergeOutcome.EXISTS
    working.products.append(candidate.copy())
    return working, MergeOutcome.ADDED
