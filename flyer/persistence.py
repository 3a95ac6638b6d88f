"""Reading, merging and writing flyer documents in object storage.

Every read-modify-write runs inside a per-object-path lock:

    download -> parse -> locate + dedup + insert -> upload (overwrite)

If the download fails or the stored bytes do not parse into the expected
shape, nothing is written: falling back to an empty document would wipe the
stored data. A product that already exists is a successful no-op.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Union

from flyer.config import MAX_SAVE_ATTEMPTS
from flyer.dedup import MatchMode
from flyer.errors import (
    FlyerError,
    InvalidDocumentError,
    NoFreeNameError,
    ObjectExistsError,
    ValidationError,
)
from flyer.locks import KeyedLock
from flyer.logging_config import get_logger, log_flyer_event
from flyer.merge import MergeOutcome, merge_into_catalog, merge_product
from flyer.models import FlyerDocument, MasterCatalog, ProductRecord
from flyer.naming import (
    build_file_name,
    candidate_names,
    flyer_object_path,
    master_object_path,
)
from flyer.storage import StorageBackend

__all__ = [
    "AppendResult",
    "SaveResult",
    "PersistenceCoordinator",
    "serialize_document",
    "parse_document",
    "parse_catalog",
    "load_json",
]

logger = get_logger("persistence")

Serializable = Union[FlyerDocument, MasterCatalog, list, dict]


def serialize_document(document: Serializable) -> str:
    """2-space indented JSON with non-ASCII kept as is.

    Byte-identical to ``JSON.stringify(data, null, 2)`` for the same data.
    """
    if isinstance(document, (FlyerDocument, MasterCatalog)):
        document = document.to_json()
    return json.dumps(document, ensure_ascii=False, indent=2)


def load_json(raw: Union[bytes, str], path: Optional[str] = None) -> Any:
    """Decode and parse JSON bytes (a UTF-8 BOM is tolerated).

    Raises:
        InvalidDocumentError: Not UTF-8 or not valid JSON.
    """
    try:
        text = raw.decode("utf-8-sig") if isinstance(raw, bytes) else raw
        return json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidDocumentError(f"Stored JSON is not valid JSON: {e}", path=path) from e


def parse_document(raw: Union[bytes, str], path: Optional[str] = None) -> FlyerDocument:
    """Parse stored bytes into a FlyerDocument.

    Raises:
        InvalidDocumentError: Invalid JSON or not a category array.
    """
    data = load_json(raw, path)
    try:
        return FlyerDocument.from_json(data)
    except InvalidDocumentError as e:
        e.path = path
        raise


def parse_catalog(raw: Union[bytes, str], path: Optional[str] = None) -> MasterCatalog:
    """Parse stored bytes into a MasterCatalog.

    Raises:
        InvalidDocumentError: Invalid JSON, a top level that is not an object,
            a ``Produkty`` that is not an array, or an entry that is not an
            object.
    """
    data = load_json(raw, path)
    try:
        return MasterCatalog.from_json(data)
    except InvalidDocumentError as e:
        e.path = path
        raise


@dataclass
class AppendResult:
    """Outcome of a single-product append."""

    path: str
    outcome: MergeOutcome
    total: int

    @property
    def added(self) -> bool:
        return self.outcome is MergeOutcome.ADDED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "status": self.outcome.value,
            "added": self.added,
            "total": self.total,
        }


@dataclass
class SaveResult:
    """Where a new flyer file ended up."""

    path: str
    attempts: int

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "attempts": self.attempts}


class PersistenceCoordinator:
    """Serialized read-modify-write access to stored flyers and catalogs.

    One instance should be shared by everything that writes to the same
    storage, since the lock table lives on the instance.
    """

    def __init__(
        self,
        storage: StorageBackend,
        locks: Optional[KeyedLock] = None,
        max_save_attempts: int = MAX_SAVE_ATTEMPTS,
        lock_timeout: Optional[float] = None,
    ):
        self.storage = storage
        self.locks = locks or KeyedLock()
        self.max_save_attempts = max_save_attempts
        self.lock_timeout = lock_timeout

    @staticmethod
    def _require_name(product: ProductRecord) -> None:
        if not product.name.strip():
            raise ValidationError("Missing product name.")

    def append_product(self, object_path: str, product: ProductRecord) -> AppendResult:
        """Append one product to a stored flyer, skipping it if already present.

        Duplicate check is strict: same normalized name at the same
        category/subcategory/placement.

        Raises:
            ValidationError: Blank product name.
            HierarchyNotFoundError: The product's placement is not in the file.
            DownloadFailedError / InvalidDocumentError: Stored file unusable;
                nothing was written.
            UploadFailedError: The write itself failed.
        """
        self._require_name(product)
        try:
            with self.locks.hold(object_path, self.lock_timeout):
                document = parse_document(self.storage.download(object_path), object_path)
                merged, outcome = merge_product(document, product, mode=MatchMode.STRICT)
                if outcome is MergeOutcome.ADDED:
                    self.storage.upload(object_path, serialize_document(merged) + "\n", upsert=True)
        except FlyerError as e:
            e.path = e.path or object_path
            log_flyer_event(
                "append_failed",
                {"message": f"Append to {object_path} failed: {e.detail}", "path": object_path, "kind": e.kind},
                level=logging.WARNING,
                logger_name="persistence",
            )
            raise

        result = AppendResult(path=object_path, outcome=outcome, total=merged.product_count())
        log_flyer_event(
            "product_appended" if result.added else "product_exists",
            {
                "message": f"{product.name!r} {result.outcome.value} in {object_path}",
                "path": object_path,
                "product": product.name,
                "placement": list(product.hierarchy),
            },
            logger_name="persistence",
        )
        return result

    def append_master_product(self, country: str, product: ProductRecord) -> AppendResult:
        """Append one product to a country's master catalog (name-only dedup).

        Raises:
            InvalidCountryError: Unsupported country code.
            ValidationError: Blank product name.
            DownloadFailedError / InvalidDocumentError: Stored catalog
                unusable; nothing was written.
            UploadFailedError: The write itself failed.
        """
        object_path = master_object_path(country)
        self._require_name(product)
        try:
            with self.locks.hold(object_path, self.lock_timeout):
                catalog = parse_catalog(self.storage.download(object_path), object_path)
                merged, outcome = merge_into_catalog(catalog, product)
                if outcome is MergeOutcome.ADDED:
                    self.storage.upload(object_path, serialize_document(merged), upsert=True)
        except FlyerError as e:
            e.path = e.path or object_path
            log_flyer_event(
                "append_failed",
                {"message": f"Master append to {object_path} failed: {e.detail}", "path": object_path, "kind": e.kind},
                level=logging.WARNING,
                logger_name="persistence",
            )
            raise

        result = AppendResult(path=object_path, outcome=outcome, total=len(merged.products))
        log_flyer_event(
            "master_appended" if result.added else "product_exists",
            {
                "message": f"{product.name!r} {result.outcome.value} in {object_path}",
                "path": object_path,
                "product": product.name,
                "total": result.total,
            },
            logger_name="persistence",
        )
        return result

    def persist(self, object_path: str, document: Serializable, overwrite: bool = True) -> str:
        """Write a whole document to ``object_path``.

        Holds the path's lock so it cannot interleave with an append.

        Raises:
            ObjectExistsError: ``overwrite`` is False and the object exists.
            UploadFailedError: The write failed.
        """
        payload = serialize_document(document)
        with self.locks.hold(object_path, self.lock_timeout):
            self.storage.upload(object_path, payload, upsert=overwrite)
        logger.info(f"Wrote {object_path} ({len(payload)} chars, overwrite={overwrite})")
        return object_path

    def save_document(
        self,
        document: Serializable,
        country: str,
        shop: Optional[str],
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        today: Optional[date] = None,
    ) -> SaveResult:
        """Save a new flyer file without ever overwriting an existing one.

        Tries ``name.json``, ``name_2.json`` ... with create-only uploads
        until one succeeds.

        Raises:
            NoFreeNameError: All ``max_save_attempts`` names are taken.
            UploadFailedError: A write failed for another reason.
        """
        file_name = build_file_name(shop, date_from, date_to, today=today)
        payload = serialize_document(document)

        attempts = 0
        for name in candidate_names(file_name, self.max_save_attempts):
            attempts += 1
            object_path = flyer_object_path(country, shop, name)
            try:
                self.storage.upload(object_path, payload, upsert=False)
            except ObjectExistsError:
                logger.debug(f"{object_path} exists, trying next name")
                continue
            log_flyer_event(
                "flyer_saved",
                {"message": f"Saved flyer to {object_path}", "path": object_path, "attempts": attempts},
                logger_name="persistence",
            )
            return SaveResult(path=object_path, attempts=attempts)

        log_flyer_event(
            "save_failed",
            {"message": f"No free file name for {file_name}", "file_name": file_name, "attempts": attempts},
            level=logging.WARNING,
            logger_name="persistence",
        )
        raise NoFreeNameError(
            f"No free file name for {file_name} after {attempts} attempts",
            path=flyer_object_path(country, shop, file_name),
        )
