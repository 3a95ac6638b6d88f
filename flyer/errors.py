"""Error types raised by the flyer core.

Every error carries a stable machine-readable ``kind`` (used as the wire value
in API responses) plus a human-readable ``detail``. Duplicate products are not
errors; see ``flyer.merge.MergeOutcome``.
"""

from typing import Any, Dict, Optional

__all__ = [
    "FlyerError",
    "ValidationError",
    "InvalidCountryError",
    "HierarchyNotFoundError",
    "ProductIndexError",
    "InvalidDocumentError",
    "DownloadFailedError",
    "UploadFailedError",
    "ObjectExistsError",
    "NoFreeNameError",
]


class FlyerError(Exception):
    """Base class for all flyer errors."""

    kind = "flyer_error"
    status_code = 500

    def __init__(self, detail: str, path: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        data: Dict[str, Any] = {"error": self.detail, "kind": self.kind}
        if self.path:
            data["path"] = self.path
        return data


class ValidationError(FlyerError):
    """Raised when a request or record is missing required data."""

    kind = "invalid_request"
    status_code = 400


class InvalidCountryError(ValidationError):
    """Raised for a country code outside the supported set."""

    kind = "invalid_country"


class HierarchyNotFoundError(ValidationError):
    """Raised when a category, subcategory or placement key does not resolve.

    ``level`` is one of ``"category"``, ``"subcategory"`` or ``"placement"``
    and the ``kind`` follows it (``category_not_found`` ...).
    """

    def __init__(self, level: str, key: str, path: Optional[str] = None):
        super().__init__(f"{level.capitalize()} not found: {key!r}", path=path)
        self.level = level
        self.key = key
        self.kind = f"{level}_not_found"


class ProductIndexError(ValidationError):
    """Raised when an origin index does not point at an existing product."""

    kind = "product_not_found"


class InvalidDocumentError(FlyerError):
    """Raised when stored bytes are not valid JSON or have the wrong shape."""

    kind = "invalid_json"


class DownloadFailedError(FlyerError):
    """Raised when an existing object cannot be downloaded."""

    kind = "download_failed"
    status_code = 404


class UploadFailedError(FlyerError):
    """Raised when the storage backend rejects an upload."""

    kind = "upload_failed"


class ObjectExistsError(UploadFailedError):
    """Raised by a create-only upload when the object already exists."""

    kind = "object_exists"
    status_code = 409


class NoFreeNameError(FlyerError):
    """Raised when every candidate file name for a new flyer is taken."""

    kind = "no_free_name"
    status_code = 409
