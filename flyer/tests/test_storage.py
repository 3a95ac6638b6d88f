"""Tests for the storage backends."""

from unittest.mock import MagicMock

import pytest
import requests

from flyer.errors import (
    DownloadFailedError,
    ObjectExistsError,
    UploadFailedError,
    ValidationError,
)
from flyer.storage import LocalStorage, SupabaseStorage, create_storage


def _response(status_code, json_body=None, content=b""):
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = content
    resp.text = content.decode("utf-8")
    resp.reason = ""
    if json_body is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_body
    return resp


class TestLocalStorage:
    """Tests for the filesystem backend."""

    def test_upload_and_download(self, tmp_path):
        storage = LocalStorage(tmp_path)
        storage.upload("sk/billa.json", "[]", upsert=True)
        assert storage.download("sk/billa.json") == b"[]"
        assert (tmp_path / "sk" / "billa.json").read_text() == "[]"

    def test_upsert_overwrites(self, tmp_path):
        storage = LocalStorage(tmp_path)
        storage.upload("a.json", "1", upsert=True)
        storage.upload("a.json", "2", upsert=True)
        assert storage.download("a.json") == b"2"

    def test_create_only_refuses_existing(self, tmp_path):
        storage = LocalStorage(tmp_path)
        storage.upload("a.json", "1")
        with pytest.raises(ObjectExistsError):
            storage.upload("a.json", "2")
        assert storage.download("a.json") == b"1"

    def test_no_temp_files_left(self, tmp_path):
        storage = LocalStorage(tmp_path)
        storage.upload("a.json", "1")
        with pytest.raises(ObjectExistsError):
            storage.upload("a.json", "2")
        assert [p.name for p in tmp_path.iterdir()] == ["a.json"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(DownloadFailedError) as exc:
            LocalStorage(tmp_path).download("nope.json")
        assert "not found" in exc.value.detail

    @pytest.mark.parametrize("path", ["../outside.json", "sk/../../outside.json"])
    def test_path_escape_rejected(self, tmp_path, path):
        storage = LocalStorage(tmp_path / "root")
        with pytest.raises(ValidationError):
            storage.upload(path, "x", upsert=True)


class TestSupabaseStorage:
    """Tests for the Supabase REST backend with a mocked session."""

    @pytest.fixture
    def session(self):
        return MagicMock(spec=requests.Session)

    @pytest.fixture
    def storage(self, session):
        return SupabaseStorage(url="https://abc.supabase.co/", service_key="key", bucket="cap-data", session=session)

    def test_requires_credentials(self):
        with pytest.raises(ValidationError):
            SupabaseStorage(url="", service_key="")

    def test_download(self, storage, session):
        session.get.return_value = _response(200, content=b"[]")
        assert storage.download("databazy/sk/slovakia.json") == b"[]"
        url = session.get.call_args[0][0]
        assert url == "https://abc.supabase.co/storage/v1/object/cap-data/databazy/sk/slovakia.json"

    def test_download_not_found(self, storage, session):
        session.get.return_value = _response(404, {"message": "Object not found"})
        with pytest.raises(DownloadFailedError) as exc:
            storage.download("sk/billa.json")
        assert "Object not found" in exc.value.detail

    def test_download_network_error(self, storage, session):
        session.get.side_effect = requests.exceptions.ConnectionError("down")
        with pytest.raises(DownloadFailedError):
            storage.download("sk/billa.json")

    def test_upload_headers(self, storage, session):
        session.post.return_value = _response(200, {"Key": "x"})
        storage.upload("sk/billa.json", "[]", upsert=True)
        kwargs = session.post.call_args[1]
        assert kwargs["headers"]["x-upsert"] == "true"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["data"] == b"[]"

    def test_path_is_quoted(self, storage, session):
        session.post.return_value = _response(200, {})
        storage.upload("databazy/sk/môj obchod/letak.json", "[]", upsert=False)
        url = session.post.call_args[0][0]
        assert url.endswith("/databazy/sk/m%C3%B4j%20obchod/letak.json")
        assert session.post.call_args[1]["headers"]["x-upsert"] == "false"

    @pytest.mark.parametrize("status,body", [
        (409, {"message": "The resource already exists"}),
        (400, {"error": "Duplicate", "message": "The resource already exists"}),
    ])
    def test_create_only_conflict(self, storage, session, status, body):
        session.post.return_value = _response(status, body)
        with pytest.raises(ObjectExistsError):
            storage.upload("a.json", "[]", upsert=False)

    def test_upload_rejected(self, storage, session):
        session.post.return_value = _response(403, {"message": "new row violates row-level security policy"})
        with pytest.raises(UploadFailedError) as exc:
            storage.upload("a.json", "[]", upsert=True)
        assert not isinstance(exc.value, ObjectExistsError)

    def test_upload_network_error(self, storage, session):
        session.post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(UploadFailedError):
            storage.upload("a.json", "[]", upsert=True)


class TestCreateStorage:
    def test_local(self):
        assert isinstance(create_storage("local"), LocalStorage)

    def test_unknown(self):
        with pytest.raises(ValidationError):
            create_storage("s3")
