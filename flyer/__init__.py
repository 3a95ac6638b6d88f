"""Flyer builder: hierarchical product merge and storage for retail flyers."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from flyer.dedup import MatchMode, find_duplicate, is_duplicate
from flyer.errors import FlyerError
from flyer.hierarchy import locate, load_template
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
from flyer.normalize import matches_search, normalize_key, tight_key
from flyer.persistence import PersistenceCoordinator, serialize_document
from flyer.session import EditingSession

__all__ = [
    # Version
    "__version__",
    # Models
    "ProductRecord",
    "FlyerDocument",
    "MasterCatalog",
    "FlyerError",
    # Matching
    "normalize_key",
    "tight_key",
    "matches_search",
    "MatchMode",
    "find_duplicate",
    "is_duplicate",
    # Hierarchy and merge
    "locate",
    "load_template",
    "MergeOutcome",
    "OriginRef",
    "merge_product",
    "remove_product",
    "rebuild_document",
    "combine_with_loaded",
    "merge_into_catalog",
    # Persistence
    "PersistenceCoordinator",
    "serialize_document",
    "EditingSession",
]
