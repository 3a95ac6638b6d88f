"""Object storage backends.

Both backends expose whole-object download and upload only; there is no
partial update. Uploads are either overwrite-allowed (``upsert=True``) or
create-only (``upsert=False``, raising ``ObjectExistsError`` if the object is
already there). No call is retried automatically.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

import requests  # type: ignore[import-untyped]

from flyer.config import (
    LOCAL_STORAGE_ROOT,
    REQUEST_TIMEOUT,
    STORAGE_BACKEND,
    STORAGE_BUCKET,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from flyer.errors import (
    DownloadFailedError,
    ObjectExistsError,
    UploadFailedError,
    ValidationError,
)
from flyer.logging_config import get_logger

__all__ = [
    "StorageBackend",
    "SupabaseStorage",
    "LocalStorage",
    "create_storage",
]

logger = get_logger("storage")

JSON_CONTENT_TYPE = "application/json"


class StorageBackend:
    """Interface for whole-object storage."""

    def download(self, path: str) -> bytes:
        """Return the object's bytes.

        Raises:
            DownloadFailedError: Missing object or transport failure.
        """
        raise NotImplementedError

    def upload(self, path: str, data: Union[bytes, str], upsert: bool = False) -> None:
        """Write the whole object.

        Raises:
            ObjectExistsError: ``upsert`` is False and the object exists.
            UploadFailedError: Any other rejected write.
        """
        raise NotImplementedError


def _as_bytes(data: Union[bytes, str]) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else data


# =============================================================================
# Supabase Storage (REST)
# =============================================================================


def create_session(service_key: str) -> requests.Session:
    """Create a requests Session authenticated with the service role key."""
    session = requests.Session()
    session.headers.update({
        "Authorization": f"Bearer {service_key}",
        "apikey": service_key,
    })
    return session


class SupabaseStorage(StorageBackend):
    """Supabase Storage bucket accessed through its REST API."""

    def __init__(
        self,
        url: str = SUPABASE_URL,
        service_key: str = SUPABASE_SERVICE_ROLE_KEY,
        bucket: str = STORAGE_BUCKET,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if not url or not service_key:
            raise ValidationError("Missing SUPABASE env (URL or SERVICE_ROLE_KEY).")
        self.base_url = url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.session = session or create_session(service_key)

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{quote(self.bucket)}/{quote(path.lstrip('/'), safe='/')}"

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or resp.reason or f"HTTP {resp.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    def download(self, path: str) -> bytes:
        try:
            resp = self.session.get(self._object_url(path), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Download of {path} failed: {e}")
            raise DownloadFailedError(f"Cannot download {path}: {e}", path=path) from e

        if resp.status_code != 200:
            message = self._error_message(resp)
            logger.warning(f"Download of {path} returned {resp.status_code}: {message}")
            raise DownloadFailedError(f"Cannot download {path}: {message}", path=path)
        return resp.content

    def upload(self, path: str, data: Union[bytes, str], upsert: bool = False) -> None:
        headers = {
            "Content-Type": JSON_CONTENT_TYPE,
            "x-upsert": "true" if upsert else "false",
        }
        try:
            resp = self.session.post(
                self._object_url(path),
                data=_as_bytes(data),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Upload of {path} failed: {e}")
            raise UploadFailedError(f"Upload failed for {path}: {e}", path=path) from e

        if resp.status_code in (200, 201):
            return

        message = self._error_message(resp)
        # Older storage versions answer a duplicate with 400 + "Duplicate".
        if not upsert and (resp.status_code == 409 or "Duplicate" in message or "already exists" in message):
            raise ObjectExistsError(f"Object already exists: {path}", path=path)
        logger.warning(f"Upload of {path} returned {resp.status_code}: {message}")
        raise UploadFailedError(f"Upload failed for {path}: {message}", path=path)


# =============================================================================
# Local filesystem
# =============================================================================


class LocalStorage(StorageBackend):
    """Objects as files below a root directory (e.g. ``public/data``)."""

    def __init__(self, root: Union[str, Path] = LOCAL_STORAGE_ROOT):
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if target != self.root and self.root not in target.parents:
            raise ValidationError(f"Invalid path: {path}", path=path)
        return target

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise DownloadFailedError(f"Source JSON not found: {path}", path=path) from e
        except OSError as e:
            logger.error(f"Reading {target} failed: {e}")
            raise DownloadFailedError(f"Cannot read {path}: {e}", path=path) from e

    def upload(self, path: str, data: Union[bytes, str], upsert: bool = False) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        except OSError as e:
            raise UploadFailedError(f"Upload failed for {path}: {e}", path=path) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(_as_bytes(data))
            if upsert:
                os.replace(tmp_name, target)
            else:
                # link() refuses to overwrite, which makes create-only atomic
                os.link(tmp_name, target)
        except FileExistsError as e:
            raise ObjectExistsError(f"Object already exists: {path}", path=path) from e
        except OSError as e:
            logger.error(f"Writing {target} failed: {e}")
            raise UploadFailedError(f"Upload failed for {path}: {e}", path=path) from e
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)


def create_storage(kind: str = STORAGE_BACKEND) -> StorageBackend:
    """Backend selected by ``STORAGE_BACKEND`` (``supabase`` or ``local``)."""
    if kind == "local":
        return LocalStorage()
    if kind == "supabase":
        return SupabaseStorage()
    raise ValidationError(f"Unknown storage backend: {kind!r}")
