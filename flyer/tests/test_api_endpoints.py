"""Test API endpoints."""

import json
import threading
import time

import pytest

from flyer.api import _get_coordinator
from flyer.app import create_app
from flyer.persistence import parse_document


def _product(name, **overrides):
    data = {
        "Názov": name,
        "Kategória": "Pekáreň",
        "Podkategória": "Chlieb",
        "Zaradenie": "Rozne druhy",
        "Akciová cena": "1,29",
    }
    data.update(overrides)
    return data


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json == {"status": "ok"}


class TestHierarchyEndpoint:
    def test_returns_template(self, client):
        response = client.get("/api/hierarchy")
        assert response.status_code == 200
        assert response.json[0]["Kategória"] == "Pekáreň"

    def test_non_ascii_not_escaped(self, client):
        response = client.get("/api/hierarchy")
        assert "Pekáreň" in response.get_data(as_text=True)


class TestAppendProductEndpoint:
    """Test POST /api/append-product."""

    def test_added_then_exists(self, client, storage, shop_path):
        body = {"bucketPath": "sk", "shop": "billa", "product": _product("Chlieb")}
        response = client.post("/api/append-product", json=body)
        assert response.status_code == 200
        assert response.json["status"] == "added"
        assert response.json["added"] is True
        assert response.json["path"] == shop_path

        response = client.post("/api/append-product", json=body)
        assert response.status_code == 200
        assert response.json["status"] == "exists"
        assert response.json["added"] is False

    def test_missing_shop(self, client):
        response = client.post("/api/append-product", json={"bucketPath": "sk", "product": _product("Chlieb")})
        assert response.status_code == 400
        assert response.json["kind"] == "invalid_request"
        assert "error" in response.json

    def test_missing_product(self, client, shop_path):
        response = client.post("/api/append-product", json={"bucketPath": "sk", "shop": "billa"})
        assert response.status_code == 400

    def test_not_json_object(self, client):
        response = client.post("/api/append-product", data="[1, 2]", content_type="application/json")
        assert response.status_code == 400
        assert response.json["kind"] == "invalid_request"

    def test_malformed_json(self, client):
        response = client.post("/api/append-product", data="{", content_type="application/json")
        assert response.status_code == 400

    @pytest.mark.parametrize("overrides,kind", [
        ({"Kategória": "Mäso"}, "category_not_found"),
        ({"Podkategória": "Syry"}, "subcategory_not_found"),
        ({"Zaradenie": "Tvrdé syry"}, "placement_not_found"),
    ])
    def test_hierarchy_not_found(self, client, storage, shop_path, overrides, kind):
        body = {"bucketPath": "sk", "shop": "billa", "product": _product("Chlieb", **overrides)}
        response = client.post("/api/append-product", json=body)
        assert response.status_code == 400
        assert response.json["kind"] == kind
        assert storage.uploads == []

    def test_missing_file(self, client, storage):
        body = {"bucketPath": "sk", "shop": "lidl", "product": _product("Chlieb")}
        response = client.post("/api/append-product", json=body)
        assert response.status_code == 404
        assert response.json["kind"] == "download_failed"
        assert storage.uploads == []

    def test_corrupt_file(self, client, storage):
        storage.put("sk/billa.json", "not json")
        body = {"bucketPath": "sk", "shop": "billa", "product": _product("Chlieb")}
        response = client.post("/api/append-product", json=body)
        assert response.status_code == 500
        assert response.json["kind"] == "invalid_json"
        assert storage.text("sk/billa.json") == "not json"

    def test_upload_failure(self, client, storage, shop_path):
        storage.fail_upload.add(shop_path)
        body = {"bucketPath": "sk", "shop": "billa", "product": _product("Chlieb")}
        response = client.post("/api/append-product", json=body)
        assert response.status_code == 500
        assert response.json["kind"] == "upload_failed"


class TestMasterAppendEndpoint:
    """Test POST /api/master-products/append."""

    @pytest.fixture
    def master_path(self, storage):
        path = "databazy/sk/slovakia.json"
        storage.put(path, json.dumps({"Produkty": []}))
        return path

    def test_append(self, client, storage, master_path):
        response = client.post("/api/master-products/append", json={"country": "sk", "product": _product("Mlieko")})
        assert response.status_code == 200
        assert response.json == {
            "ok": True,
            "path": master_path,
            "status": "added",
            "added": True,
            "total": 1,
        }

    def test_duplicate_ignores_hierarchy(self, client, master_path):
        client.post("/api/master-products/append", json={"country": "sk", "product": _product("Mlieko")})
        response = client.post(
            "/api/master-products/append",
            json={"country": "sk", "product": _product("MLIEKO", Zaradenie="Celozrnný")},
        )
        assert response.json["ok"] is True
        assert response.json["added"] is False
        assert response.json["total"] == 1

    def test_invalid_country(self, client):
        response = client.post("/api/master-products/append", json={"country": "de", "product": _product("Mlieko")})
        assert response.status_code == 400
        assert response.json["ok"] is False
        assert response.json["kind"] == "invalid_country"

    def test_missing_name(self, client, master_path):
        response = client.post("/api/master-products/append", json={"country": "sk", "product": _product("  ")})
        assert response.status_code == 400
        assert response.json["ok"] is False


class TestSaveFlyerEndpoint:
    """Test POST /api/flyers."""

    def test_save_twice_gets_next_name(self, client, storage, template):
        body = {
            "country": "sk",
            "shop": "Billa",
            "dateFrom": "05.03.2026",
            "dateTo": "11.03.2026",
            "document": template.to_json(),
        }
        first = client.post("/api/flyers", json=body)
        second = client.post("/api/flyers", json=body)
        assert first.status_code == 201
        assert first.json["path"] == "databazy/sk/billa/billa_05.03-11.03.2026.json"
        assert second.json["path"] == "databazy/sk/billa/billa_05.03-11.03.2026_2.json"

    def test_invalid_document(self, client):
        body = {"country": "sk", "shop": "billa", "document": {"Produkty": []}}
        response = client.post("/api/flyers", json=body)
        assert response.status_code == 400

    def test_no_free_name(self, client, storage, template):
        base = "databazy/sk/billa/billa_05.03-11.03.2026"
        storage.put(f"{base}.json", "x")
        for n in range(2, 6):
            storage.put(f"{base}_{n}.json", "x")
        body = {
            "country": "sk",
            "shop": "billa",
            "dateFrom": "05.03.2026",
            "dateTo": "11.03.2026",
            "document": template.to_json(),
        }
        response = client.post("/api/flyers", json=body)
        assert response.status_code == 409
        assert response.json["kind"] == "no_free_name"


class TestPreviewEndpoint:
    def test_rebuild(self, client):
        response = client.post("/api/preview", json={"products": [_product("Chlieb"), _product("Rohlík")]})
        assert response.status_code == 200
        placement = response.json["document"][0]["Podkategórie"][0]["Zaradenia"][0]
        assert [p["Názov"] for p in placement["Produkty"]] == ["Chlieb", "Rohlík"]
        assert response.json["count"] == 2

    def test_with_loaded(self, client):
        loaded = [
            {"Kategória": "Pekáreň", "Podkategórie": [
                {"Podkategória": "Chlieb", "Zaradenia": [
                    {"Zaradenie": "Rozne druhy", "Produkty": [_product("Starý")]},
                ]},
            ]},
        ]
        products = [_product("Nový"), _product("Mlieko", **{"Kategória": "Mliečne výrobky", "Podkategória": "Mlieko", "Zaradenie": "Čerstvé"})]
        response = client.post("/api/preview", json={"products": products, "loaded": loaded})
        placement = response.json["document"][0]["Podkategórie"][0]["Zaradenia"][0]
        assert [p["Názov"] for p in placement["Produkty"]] == ["Starý", "Nový"]
        assert [p["Názov"] for p in response.json["orphans"]] == ["Mlieko"]

    def test_products_not_a_list(self, client):
        response = client.post("/api/preview", json={"products": {"a": 1}})
        assert response.status_code == 400


class TestSharedCoordinator:
    """The lazily created coordinator must be one object per app."""

    def test_concurrent_first_use_creates_one(self, monkeypatch, storage, template):
        calls = []

        def slow_storage():
            calls.append(threading.current_thread().name)
            time.sleep(0.05)
            return storage

        monkeypatch.setattr("flyer.api.create_storage", slow_storage)
        app = create_app(template=template)
        start = threading.Barrier(2)
        seen = []

        def first_use():
            with app.app_context():
                start.wait()
                seen.append(_get_coordinator())

        threads = [threading.Thread(target=first_use) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(calls) == 1
        assert len(seen) == 2
        assert seen[0] is seen[1]
        assert app.config["FLYER_COORDINATOR"] is seen[0]

    def test_first_appends_do_not_lose_updates(self, monkeypatch, storage, shop_path, template):
        storage.download_delay[shop_path] = 0.05
        monkeypatch.setattr("flyer.api.create_storage", lambda: storage)
        app = create_app(template=template)
        start = threading.Barrier(2)
        statuses = []

        def post(name):
            with app.test_client() as c:
                start.wait()
                response = c.post(
                    "/api/append-product",
                    json={"bucketPath": "sk", "shop": "billa", "product": _product(name)},
                )
                statuses.append(response.status_code)

        threads = [threading.Thread(target=post, args=(n,)) for n in ("Chlieb", "Rohlík")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert statuses == [200, 200]
        document = parse_document(storage.objects[shop_path])
        names = [p.name for _, _, placement in document.walk() for p in placement.products]
        assert sorted(names) == ["Chlieb", "Rohlík"]
