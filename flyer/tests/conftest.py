"""Shared test fixtures for the flyer test suite."""

import logging
import threading
import time
from pathlib import Path
from typing import Dict, List, Set, Tuple, Union

import pytest

from flyer.app import create_app
from flyer.errors import DownloadFailedError, ObjectExistsError, UploadFailedError
from flyer.hierarchy import load_template
from flyer.models import FlyerDocument, ProductRecord
from flyer.persistence import PersistenceCoordinator, serialize_document
from flyer.storage import StorageBackend

TEMPLATE_PATH = Path(__file__).resolve().parents[1] / "data" / "hierarchy.json"


class FakeStorage(StorageBackend):
    """In-memory storage with injectable delays and failures.

    ``download_delay`` sleeps *after* the bytes were read, which widens the
    read-modify-write window enough for unsynchronized writers to lose
    updates.
    """

    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.download_delay: Dict[str, float] = {}
        self.fail_download: Set[str] = set()
        self.fail_upload: Set[str] = set()
        self.uploads: List[Tuple[str, bool]] = []
        self._mutex = threading.Lock()

    def put(self, path: str, data: Union[bytes, str]) -> None:
        self.objects[path] = data.encode("utf-8") if isinstance(data, str) else data

    def text(self, path: str) -> str:
        return self.objects[path].decode("utf-8")

    def download(self, path: str) -> bytes:
        if path in self.fail_download or path not in self.objects:
            raise DownloadFailedError(f"Cannot download {path}", path=path)
        with self._mutex:
            data = self.objects[path]
        time.sleep(self.download_delay.get(path, 0))
        return data

    def upload(self, path: str, data: Union[bytes, str], upsert: bool = False) -> None:
        with self._mutex:
            self.uploads.append((path, upsert))
            if path in self.fail_upload:
                raise UploadFailedError(f"Upload failed for {path}", path=path)
            if not upsert and path in self.objects:
                raise ObjectExistsError(f"Object already exists: {path}", path=path)
            self.objects[path] = data.encode("utf-8") if isinstance(data, str) else data


@pytest.fixture(autouse=True)
def reset_flyer_logger():
    """Drop handlers a test attached to the ``flyer`` logger."""
    yield
    logger = logging.getLogger("flyer")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def template() -> FlyerDocument:
    """Hierarchy template shipped with the package."""
    return load_template(TEMPLATE_PATH)


@pytest.fixture
def make_product():
    """Factory for products (defaults to Pekáreň / Chlieb / Rozne druhy)."""

    def _make(
        name: str,
        category: str = "Pekáreň",
        subcategory: str = "Chlieb",
        placement: str = "Rozne druhy",
        **fields,
    ) -> ProductRecord:
        return ProductRecord(
            name=name,
            category=category,
            subcategory=subcategory,
            placement=placement,
            **fields,
        )

    return _make


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def shop_path(storage, template) -> str:
    """An empty shop flyer already stored at ``sk/billa.json``."""
    path = "sk/billa.json"
    storage.put(path, serialize_document(template))
    return path


@pytest.fixture
def coordinator(storage) -> PersistenceCoordinator:
    return PersistenceCoordinator(storage, max_save_attempts=5)


@pytest.fixture
def client(coordinator, template):
    """Create Flask test client over the fake storage."""
    app = create_app(coordinator=coordinator, template=template)
    app.config["TESTING"] = True

    with app.test_client() as test_client:
        yield test_client
