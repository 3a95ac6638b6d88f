"""File names and storage object paths for flyers and master catalogs."""

import re
from datetime import date
from typing import Iterator, Optional

from flyer.config import (
    COUNTRY_FILES,
    DEFAULT_FILE_STEM,
    STORAGE_ROOT_PREFIX,
    UNASSIGNED_SHOP,
)
from flyer.errors import InvalidCountryError, ValidationError
from flyer.fields import format_flyer_date

__all__ = [
    "sanitize_segment",
    "safe_shop_name",
    "country_code",
    "build_file_name",
    "candidate_names",
    "flyer_object_path",
    "master_object_path",
    "shop_object_path",
]

_RX_SEGMENT_DROP = re.compile(r"[^a-z0-9_-]")
_RX_SHOP_UNSAFE = re.compile(r"[^a-z0-9._-]+")


def sanitize_segment(value: Optional[str]) -> str:
    """Lowercase, trim and drop everything outside ``[a-z0-9_-]``.

    Used for path segments that come straight from a request body, so no
    ``/`` or ``..`` can survive.
    """
    return _RX_SEGMENT_DROP.sub("", (value or "").lower().strip())


def safe_shop_name(shop: Optional[str]) -> str:
    """Shop name for file names: unsafe runs become ``_``, edges stripped."""
    return _RX_SHOP_UNSAFE.sub("_", (shop or "").lower()).strip("_")


def country_code(country: Optional[str]) -> str:
    """Validated lowercase country code (``sk``, ``cz`` or ``pl``).

    Raises:
        InvalidCountryError: For anything else.
    """
    code = (country or "").lower().strip()
    if code not in COUNTRY_FILES:
        raise InvalidCountryError(f"Invalid country. Use {'/'.join(COUNTRY_FILES)}.")
    return code


def build_file_name(
    shop: Optional[str],
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    """Flyer file name, e.g. ``billa_05.03-11.03.2026.json``.

    The start date is shortened to ``DD.MM``; the end date stays full. A
    missing date falls back to ``today``. A start date that is not three
    dot-separated parts is used as typed.
    """
    fallback = format_flyer_date(today or date.today())
    start = date_from or fallback
    end = date_to or fallback

    parts = start.split(".")
    start_short = f"{parts[0]}.{parts[1]}" if len(parts) == 3 else start
    return f"{safe_shop_name(shop) or DEFAULT_FILE_STEM}_{start_short}-{end}.json"


def candidate_names(file_name: str, attempts: int) -> Iterator[str]:
    """``name.json``, ``name_2.json``, ``name_3.json`` ... (``attempts`` names)."""
    stem = file_name[: -len(".json")] if file_name.endswith(".json") else file_name
    if attempts >= 1:
        yield f"{stem}.json"
    for n in range(2, attempts + 1):
        yield f"{stem}_{n}.json"


def flyer_object_path(country: str, shop: Optional[str], file_name: str) -> str:
    """``databazy/{country}/{shop}/{file_name}`` for a saved flyer."""
    return f"{STORAGE_ROOT_PREFIX}/{country_code(country)}/{safe_shop_name(shop) or UNASSIGNED_SHOP}/{file_name}"


def master_object_path(country: Optional[str]) -> str:
    """``databazy/sk/slovakia.json`` etc.

    Raises:
        InvalidCountryError: For an unsupported country code.
    """
    code = country_code(country)
    return f"{STORAGE_ROOT_PREFIX}/{code}/{COUNTRY_FILES[code]}.json"


def shop_object_path(folder: Optional[str], shop: Optional[str]) -> str:
    """``{folder}/{shop}.json`` for the per-shop append flow.

    Raises:
        ValidationError: If either segment is empty after sanitizing.
    """
    safe_folder = sanitize_segment(folder)
    safe_shop = sanitize_segment(shop)
    if not safe_folder or not safe_shop:
        raise ValidationError("Missing bucketPath or shop.")
    return f"{safe_folder}/{safe_shop}.json"
