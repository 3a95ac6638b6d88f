"""HTTP endpoints for appending products and saving flyers.

Thin handlers: they validate the request body, call the persistence
coordinator and map ``FlyerError`` kinds to status codes. Every error body
has ``error`` (human detail) and ``kind`` (machine kind).
"""

import logging
import threading
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, current_app, jsonify, request

from flyer.errors import FlyerError, InvalidDocumentError, ValidationError
from flyer.hierarchy import load_template
from flyer.merge import combine_with_loaded, rebuild_document
from flyer.models import FlyerDocument, ProductRecord
from flyer.naming import shop_object_path
from flyer.persistence import PersistenceCoordinator
from flyer.storage import create_storage

__all__ = ["api"]

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")


# Held while the shared coordinator is created
_coordinator_lock = threading.Lock()


def _get_coordinator() -> PersistenceCoordinator:
    """Shared coordinator for the app (created on first use)."""
    coordinator = current_app.config.get("FLYER_COORDINATOR")
    if coordinator is not None:
        return coordinator
    with _coordinator_lock:
        coordinator = current_app.config.get("FLYER_COORDINATOR")
        if coordinator is None:
            coordinator = PersistenceCoordinator(create_storage())
            current_app.config["FLYER_COORDINATOR"] = coordinator
    return coordinator


def _get_template() -> FlyerDocument:
    template = current_app.config.get("FLYER_TEMPLATE")
    if template is None:
        template = load_template(current_app.config.get("HIERARCHY_PATH"))
        current_app.config["FLYER_TEMPLATE"] = template
    return template


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _product_from(value: Any) -> ProductRecord:
    if not isinstance(value, dict):
        raise ValidationError("Missing product.")
    return ProductRecord.from_dict(value)


def _document_from(value: Any) -> FlyerDocument:
    try:
        return FlyerDocument.from_json(value)
    except InvalidDocumentError as e:
        raise ValidationError(e.detail) from e


@api.errorhandler(FlyerError)
def handle_flyer_error(error: FlyerError) -> Tuple[Response, int]:
    if error.status_code >= 500:
        logger.error(f"{error.kind}: {error.detail}")
    return jsonify({"ok": False, **error.to_dict()}), error.status_code


@api.route("/append-product", methods=["POST"])
def append_product() -> Response:
    """Append one product to a shop's stored flyer.

    Request JSON:
        {"bucketPath": "sk", "shop": "billa", "product": {...}}

    Response JSON:
        {"ok": true, "status": "added" | "exists", "added": bool, "path": "...", "total": n}
    """
    data = _json_body()
    object_path = shop_object_path(data.get("bucketPath"), data.get("shop"))
    product = _product_from(data.get("product"))

    result = _get_coordinator().append_product(object_path, product)
    return jsonify({"ok": True, **result.to_dict()})


@api.route("/master-products/append", methods=["POST"])
def append_master_product() -> Response:
    """Append one product to a country's master catalog.

    Request JSON:
        {"country": "sk" | "cz" | "pl", "product": {...}}
    """
    data = _json_body()
    product = _product_from(data.get("product"))

    result = _get_coordinator().append_master_product(str(data.get("country") or ""), product)
    return jsonify({"ok": True, **result.to_dict()})


@api.route("/flyers", methods=["POST"])
def save_flyer() -> Tuple[Response, int]:
    """Save a complete flyer as a new file (never overwrites).

    Request JSON:
        {"country": "sk", "shop": "billa", "dateFrom": "05.03.2026",
         "dateTo": "11.03.2026", "document": [...]}
    """
    data = _json_body()
    document = _document_from(data.get("document"))

    result = _get_coordinator().save_document(
        document,
        country=str(data.get("country") or ""),
        shop=data.get("shop"),
        date_from=data.get("dateFrom"),
        date_to=data.get("dateTo"),
    )
    return jsonify({"ok": True, **result.to_dict()}), 201


@api.route("/preview", methods=["POST"])
def preview() -> Response:
    """Build the export document for a list of products.

    Request JSON:
        {"products": [{...}, ...], "loaded": [...optional flyer...]}

    Without ``loaded`` the hierarchy template is rebuilt with the products;
    with it, the products are appended to the loaded flyer.
    """
    data = _json_body()
    raw_products = data.get("products") or []
    if not isinstance(raw_products, list):
        raise ValidationError("products must be an array.")
    products = [_product_from(p) for p in raw_products]

    document = rebuild_document(_get_template(), [(p.hierarchy, p) for p in products])
    orphans = []
    if data.get("loaded") is not None:
        document, orphans = combine_with_loaded(_document_from(data["loaded"]), document)

    return jsonify({
        "ok": True,
        "document": document.to_json(),
        "orphans": [p.to_dict() for p in orphans],
        "count": document.product_count(),
    })


@api.route("/hierarchy", methods=["GET"])
def hierarchy() -> Response:
    """The category -> subcategory -> placement template."""
    return jsonify(_get_template().to_json())
