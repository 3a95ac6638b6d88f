"""Data models for flyer documents.

The wire format uses Slovak key names. They are the persisted schema, so they
are kept verbatim here and mapped onto Python attribute names only at the
``from_dict``/``to_dict`` boundary.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from flyer.errors import InvalidDocumentError

__all__ = [
    "PRODUCT_FIELDS",
    "CATEGORY_KEY",
    "SUBCATEGORIES_KEY",
    "SUBCATEGORY_KEY",
    "PLACEMENTS_KEY",
    "PLACEMENT_KEY",
    "PRODUCTS_KEY",
    "ProductRecord",
    "PlacementNode",
    "SubcategoryNode",
    "CategoryNode",
    "FlyerDocument",
    "MasterCatalog",
]

# Hierarchy wire keys
CATEGORY_KEY = "Kategória"
SUBCATEGORIES_KEY = "Podkategórie"
SUBCATEGORY_KEY = "Podkategória"
PLACEMENTS_KEY = "Zaradenia"
PLACEMENT_KEY = "Zaradenie"
PRODUCTS_KEY = "Produkty"

# Attribute name -> wire key, in the order products are written
PRODUCT_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("name", "Názov"),
    ("category", CATEGORY_KEY),
    ("subcategory", SUBCATEGORY_KEY),
    ("placement", PLACEMENT_KEY),
    ("quantity", "Množstvo"),
    ("unit", "Merná jednotka"),
    ("regular_price", "Bežná cena za bal."),
    ("regular_unit_price", "Bežná jednotková cena"),
    ("sale_price", "Akciová cena"),
    ("sale_unit_price", "Akciová jednotková cena"),
    ("info", "Doplnková Informácia"),
    ("sale_from", "Dátum akcie od"),
    ("sale_to", "Dátum akcie do"),
)

_WIRE_KEYS = {wire for _, wire in PRODUCT_FIELDS}


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _require_dict(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise InvalidDocumentError(f"Expected an object for {what}, got {type(value).__name__}")
    return value


def _require_list(value: Any, what: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidDocumentError(f"Expected an array for {what}, got {type(value).__name__}")
    return value


def _require_name(data: Dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise InvalidDocumentError(f"Expected a string for {key!r}, got {type(value).__name__}")
    return value


@dataclass
class ProductRecord:
    """One product entry of a flyer.

    All values are strings exactly as typed in the form: prices use a comma
    decimal separator and dates are ``DD.MM.YYYY``. Keys outside the schema
    survive a load/save cycle through ``extra``.
    """

    name: str = ""
    category: str = ""
    subcategory: str = ""
    placement: str = ""
    quantity: str = ""
    unit: str = ""
    regular_price: str = ""
    regular_unit_price: str = ""
    sale_price: str = ""
    sale_unit_price: str = ""
    info: str = ""
    sale_from: str = ""
    sale_to: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)
    # Mapping this record was read from; written back as-is while unchanged
    source: Optional[Dict[str, Any]] = field(default=None, repr=False, compare=False)

    @property
    def hierarchy(self) -> Tuple[str, str, str]:
        """The (category, subcategory, placement) keys this product is filed under."""
        return (self.category, self.subcategory, self.placement)

    def copy(self) -> "ProductRecord":
        return copy.deepcopy(self)

    def is_unchanged(self) -> bool:
        """True if this record still holds exactly what ``source`` says."""
        if self.source is None:
            return False
        for attr, wire in PRODUCT_FIELDS:
            if getattr(self, attr) != _as_text(self.source.get(wire)):
                return False
        return self.extra == {k: v for k, v in self.source.items() if k not in _WIRE_KEYS}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire mapping.

        A record read with ``from_dict`` and not modified since is written back
        exactly as it was read: same keys, key order and value types. Anything
        else is written with every schema key in order, then the extras.
        """
        if self.is_unchanged():
            return copy.deepcopy(self.source)
        data: Dict[str, Any] = {wire: getattr(self, attr) for attr, wire in PRODUCT_FIELDS}
        for key, value in self.extra.items():
            if key not in data:
                data[key] = copy.deepcopy(value)
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "ProductRecord":
        """Create from a wire mapping; missing keys read as empty strings."""
        data = _require_dict(data, "product")
        values = {attr: _as_text(data.get(wire)) for attr, wire in PRODUCT_FIELDS}
        extra = {k: copy.deepcopy(v) for k, v in data.items() if k not in _WIRE_KEYS}
        return cls(extra=extra, source=copy.deepcopy(data), **values)


@dataclass
class PlacementNode:
    """Leaf of the hierarchy; owns an ordered product list."""

    name: str
    products: List[ProductRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            PLACEMENT_KEY: self.name,
            PRODUCTS_KEY: [p.to_dict() for p in self.products],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PlacementNode":
        data = _require_dict(data, "placement")
        products = _require_list(data.get(PRODUCTS_KEY), PRODUCTS_KEY)
        return cls(
            name=_require_name(data, PLACEMENT_KEY),
            products=[ProductRecord.from_dict(p) for p in products],
        )


@dataclass
class SubcategoryNode:
    name: str
    placements: List[PlacementNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            SUBCATEGORY_KEY: self.name,
            PLACEMENTS_KEY: [p.to_dict() for p in self.placements],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "SubcategoryNode":
        data = _require_dict(data, "subcategory")
        placements = _require_list(data.get(PLACEMENTS_KEY), PLACEMENTS_KEY)
        return cls(
            name=_require_name(data, SUBCATEGORY_KEY),
            placements=[PlacementNode.from_dict(p) for p in placements],
        )


@dataclass
class CategoryNode:
    name: str
    subcategories: List[SubcategoryNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            CATEGORY_KEY: self.name,
            SUBCATEGORIES_KEY: [s.to_dict() for s in self.subcategories],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "CategoryNode":
        data = _require_dict(data, "category")
        subcategories = _require_list(data.get(SUBCATEGORIES_KEY), SUBCATEGORIES_KEY)
        return cls(
            name=_require_name(data, CATEGORY_KEY),
            subcategories=[SubcategoryNode.from_dict(s) for s in subcategories],
        )


@dataclass
class FlyerDocument:
    """A full flyer: an ordered list of category roots."""

    categories: List[CategoryNode] = field(default_factory=list)

    def copy(self) -> "FlyerDocument":
        return copy.deepcopy(self)

    def product_count(self) -> int:
        return sum(len(placement.products) for _, _, placement in self.walk())

    def walk(self) -> Iterator[Tuple[CategoryNode, SubcategoryNode, PlacementNode]]:
        """Yield every (category, subcategory, placement) in document order."""
        for category in self.categories:
            for subcategory in category.subcategories:
                for placement in subcategory.placements:
                    yield category, subcategory, placement

    def to_json(self) -> List[Dict[str, Any]]:
        return [c.to_dict() for c in self.categories]

    @classmethod
    def from_json(cls, data: Any) -> "FlyerDocument":
        """Build from parsed JSON.

        Raises:
            InvalidDocumentError: If the top level is not an array or any node
                has the wrong shape.
        """
        if not isinstance(data, list):
            raise InvalidDocumentError(
                f"Flyer document must be an array of categories, got {type(data).__name__}"
            )
        return cls(categories=[CategoryNode.from_dict(c) for c in data])


@dataclass
class MasterCatalog:
    """Country-wide flat product list (``{"Produkty": [...]}``).

    Other top-level keys are kept in ``extra`` and written back untouched, in
    their stored order around ``Produkty``.
    """

    products: List[ProductRecord] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)
    products_position: Optional[int] = field(default=None, repr=False, compare=False)

    def copy(self) -> "MasterCatalog":
        return copy.deepcopy(self)

    def to_json(self) -> Dict[str, Any]:
        items = [(k, copy.deepcopy(v)) for k, v in self.extra.items()]
        position = len(items) if self.products_position is None else self.products_position
        items.insert(position, (PRODUCTS_KEY, [p.to_dict() for p in self.products]))
        return dict(items)

    @classmethod
    def from_json(cls, data: Any) -> "MasterCatalog":
        """Build from parsed JSON.

        An object without a ``Produkty`` key is an empty catalog. Entries
        keep their stored form (see ``ProductRecord.to_dict``).

        Raises:
            InvalidDocumentError: If the top level is not an object, ``Produkty``
                is present but not an array, or an entry is not an object.
        """
        if not isinstance(data, dict):
            raise InvalidDocumentError(
                f"Master catalog must be an object, got {type(data).__name__}"
            )
        raw_products = data.get(PRODUCTS_KEY, [])
        if not isinstance(raw_products, list):
            raise InvalidDocumentError(
                f"Expected an array for {PRODUCTS_KEY}, got {type(raw_products).__name__}"
            )
        products = [ProductRecord.from_dict(raw) for raw in raw_products]
        extra = {k: copy.deepcopy(v) for k, v in data.items() if k != PRODUCTS_KEY}
        position = list(data).index(PRODUCTS_KEY) if PRODUCTS_KEY in data else None
        return cls(products=products, extra=extra, products_position=position)

