"""In-memory editing session for one user building a flyer.

Holds the products entered so far (each with a stable id), the product being
edited, and optionally a flyer loaded from a file. The export is either a
clean rebuild from the hierarchy template or, when a flyer was loaded, the
loaded flyer with the session's products appended.
"""

import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

from flyer.config import UNIT_OPTIONS
from flyer.errors import ProductIndexError, ValidationError
from flyer.fields import calculate_unit_price, normalize_price
from flyer.hierarchy import locate
from flyer.merge import (
    MergeOutcome,
    OriginRef,
    combine_with_loaded,
    merge_into_catalog,
    merge_product,
    rebuild_document,
    remove_product,
)
from flyer.models import FlyerDocument, MasterCatalog, ProductRecord
from flyer.persistence import load_json, serialize_document

__all__ = ["ProductEntry", "EditingSession", "product_from_form"]

LoadedDocument = Union[FlyerDocument, MasterCatalog]


@dataclass
class ProductEntry:
    id: str
    product: ProductRecord


def product_from_form(
    category: str,
    subcategory: str,
    placement: str,
    name: str,
    amount: str = "",
    unit: str = "kg",
    sale_price: str = "",
    sale_unit_price: str = "",
    info: str = "",
    date_from: str = "",
    date_to: str = "",
    regular_price: str = "",
    regular_unit_price: str = "",
) -> ProductRecord:
    """Build a ProductRecord from raw form values.

    Text is trimmed, prices get a comma decimal separator, and a blank sale
    unit price is computed from sale price / amount.

    Raises:
        ValidationError: ``unit`` is not one of ``UNIT_OPTIONS``.
    """
    unit = unit.strip()
    if unit not in UNIT_OPTIONS:
        raise ValidationError(f"Unknown unit {unit!r}; expected one of {', '.join(UNIT_OPTIONS)}.")
    sale_price = normalize_price(sale_price)
    sale_unit_price = normalize_price(sale_unit_price) or calculate_unit_price(sale_price, amount)
    return ProductRecord(
        name=name.strip(),
        category=category,
        subcategory=subcategory,
        placement=placement,
        quantity=amount.strip(),
        unit=unit,
        regular_price=normalize_price(regular_price),
        regular_unit_price=normalize_price(regular_unit_price),
        sale_price=sale_price,
        sale_unit_price=sale_unit_price,
        info=info.strip(),
        sale_from=date_from.strip(),
        sale_to=date_to.strip(),
    )


class EditingSession:
    """Products entered in one session, keyed by id, in entry order."""

    def __init__(self, template: FlyerDocument):
        self.template = template
        self._entries: List[ProductEntry] = []
        self.editing_id: Optional[str] = None
        self.loaded: Optional[LoadedDocument] = None

    @property
    def entries(self) -> List[ProductEntry]:
        return [ProductEntry(e.id, e.product.copy()) for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def _index_of(self, entry_id: str) -> int:
        for i, entry in enumerate(self._entries):
            if entry.id == entry_id:
                return i
        raise ProductIndexError(f"No product with id {entry_id!r} in this session")

    def add(self, product: ProductRecord) -> ProductEntry:
        """Add a product, or save it over the one being edited.

        Raises:
            ValidationError: Missing hierarchy keys or blank name.
            HierarchyNotFoundError: Keys not present in the template.
        """
        if not all(product.hierarchy):
            raise ValidationError("Select a category, subcategory and placement.")
        if not product.name.strip():
            raise ValidationError("Enter a product name.")
        locate(self.template, *product.hierarchy)

        record = product.copy()
        if self.editing_id is not None:
            index = self._index_of(self.editing_id)
            entry = ProductEntry(self.editing_id, record)
            self._entries[index] = entry
            self.editing_id = None
        else:
            entry = ProductEntry(uuid.uuid4().hex, record)
            self._entries.append(entry)
        return ProductEntry(entry.id, entry.product.copy())

    def start_edit(self, entry_id: str) -> ProductRecord:
        """Mark ``entry_id`` as being edited and return a copy of its product."""
        index = self._index_of(entry_id)
        self.editing_id = entry_id
        return self._entries[index].product.copy()

    def cancel_edit(self) -> None:
        self.editing_id = None

    def remove(self, entry_id: str) -> ProductRecord:
        index = self._index_of(entry_id)
        if self.editing_id == entry_id:
            self.editing_id = None
        return self._entries.pop(index).product

    def clear(self) -> None:
        """Drop every entry and the loaded flyer."""
        self._entries = []
        self.editing_id = None
        self.loaded = None

    def load(self, raw: Union[bytes, str]) -> LoadedDocument:
        """Load a flyer file (category array) or a flat ``{"Produkty": [...]}`` file.

        Session entries are kept; they are appended on export.

        Raises:
            InvalidDocumentError: Not valid JSON or neither shape.
        """
        data = load_json(raw)
        if isinstance(data, dict):
            self.loaded = MasterCatalog.from_json(data)
        else:
            self.loaded = FlyerDocument.from_json(data)
        return self.loaded

    def document(self) -> FlyerDocument:
        """Clean rebuild: the template filled with this session's products."""
        return rebuild_document(self.template, [(e.product.hierarchy, e.product) for e in self._entries])

    def export(self) -> LoadedDocument:
        """What gets downloaded or uploaded for this session."""
        if isinstance(self.loaded, MasterCatalog):
            catalog = self.loaded.copy()
            for entry in self._entries:
                catalog, _ = merge_into_catalog(catalog, entry.product)
            return catalog
        if isinstance(self.loaded, FlyerDocument):
            combined, _ = combine_with_loaded(self.loaded, self.document())
            return combined
        return self.document()

    def preview(self) -> str:
        return serialize_document(self.export())

    # ---------- editing the loaded flyer in place ----------

    def _loaded_flyer(self) -> FlyerDocument:
        if not isinstance(self.loaded, FlyerDocument):
            raise ValidationError("No flyer document is loaded.")
        return self.loaded

    def merge_into_loaded(self, product: ProductRecord, origin: Optional[OriginRef] = None) -> MergeOutcome:
        """Add (or, with ``origin``, edit/move) a product in the loaded flyer.

        The loaded flyer is only swapped for the merged one on success; on
        any error it stays exactly as it was.
        """
        merged, outcome = merge_product(self._loaded_flyer(), product, origin=origin)
        self.loaded = merged
        return outcome

    def remove_from_loaded(self, origin: OriginRef) -> ProductRecord:
        updated, removed = remove_product(self._loaded_flyer(), origin)
        self.loaded = updated
        return removed
