"""End-to-end tests for POST /new, GET /all and GET /images/{file_name}."""
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import PNG_BYTES
from gallery.errors import StoreError
from gallery.images.router import MULTIPART_OVERHEAD_BYTES
from gallery.main import create_app


def _upload(client: TestClient, filename="photo.png", data=PNG_BYTES, **fields):
    return client.post(
        "/new",
        files={"image": (filename, data, "image/png")},
        data=fields,
    )


class TestHome:
    def test_banner(self, api_client):
        resp = api_client.get("/")
        assert resp.status_code == 200
        assert resp.json()["title"] == "PhotoGallery"

    def test_health(self, api_client):
        assert api_client.get("/health").json() == {"status": "ok"}

    def test_unknown_route(self, api_client):
        assert api_client.get("/undefined-route").status_code == 404


class TestUpload:
    def test_requires_image(self, api_client):
        resp = api_client.post(
            "/new", data={"name": "Test Image", "description": "A test image", "author": "Test Author"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "image required"

    def test_requires_image_with_empty_body(self, api_client):
        resp = api_client.post("/new")
        assert resp.status_code == 400
        assert resp.json()["error"] == "image required"

    def test_rejects_bmp(self, api_client, content_dir):
        resp = _upload(api_client, filename="photo.bmp")
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "invalid_extension"
        assert "message" in body
        assert list(Path(content_dir).iterdir()) == []

    def test_rejects_long_fields(self, api_client):
        resp = _upload(api_client, name="x" * 501)
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "validation_error"
        assert body["messages"] == ["Name is too long (max 500 characters)"]

    def test_successful_upload(self, api_client, content_dir):
        resp = _upload(api_client, name="Sunset", description="Over the bay", author="Ada")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["fileName"].endswith(".png")
        assert isinstance(body["id"], int)
        assert body["message"] == "Image uploaded successfully"
        assert (Path(content_dir) / body["fileName"]).read_bytes() == PNG_BYTES

        listing = api_client.get("/all").json()
        assert body["id"] in [image["id"] for image in listing["data"]]

    def test_uppercase_extension_stored_lowercase(self, api_client):
        resp = _upload(api_client, filename="HOLIDAY.JPG")
        assert resp.status_code == 200
        assert resp.json()["fileName"].endswith(".jpg")

    def test_client_path_is_ignored(self, api_client, content_dir):
        resp = _upload(api_client, filename="../../etc/evil.png")
        assert resp.status_code == 200
        file_name = resp.json()["fileName"]
        assert "evil" not in file_name
        assert (Path(content_dir) / file_name).exists()

    def test_insert_failure_removes_file(self, api_client, content_dir):
        store = api_client.app.state.store
        store.insert_image = AsyncMock(side_effect=StoreError("Database insert failed"))

        resp = _upload(api_client)

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "upload_failed"
        assert body["message"] == "Failed to upload image"
        assert list(Path(content_dir).iterdir()) == []

    def test_too_large(self, config):
        config.storage.max_file_size_bytes = 16
        config.storage.chunk_size = 4
        with TestClient(create_app(config)) as client:
            resp = _upload(client, data=b"x" * 64)

        assert resp.status_code == 413
        assert resp.json()["error"] == "file_too_large"
        assert list(Path(config.storage.content_dir).iterdir()) == []

    def test_declared_size_refused_before_parsing(self, config):
        config.storage.max_file_size_bytes = 16
        body = b"x" * (16 + MULTIPART_OVERHEAD_BYTES + 1)
        with TestClient(create_app(config)) as client:
            # not valid multipart; only the size check can answer
            resp = client.post(
                "/new",
                content=body,
                headers={"content-type": "multipart/form-data; boundary=unused"},
            )

        assert resp.status_code == 413
        assert resp.json()["error"] == "file_too_large"
        assert list(Path(config.storage.content_dir).iterdir()) == []

    def test_declared_size_within_overhead_is_parsed(self, config):
        config.storage.max_file_size_bytes = 16
        with TestClient(create_app(config)) as client:
            resp = _upload(client, data=b"x" * 8)
        assert resp.status_code == 200

    def test_size_check_only_applies_to_uploads(self, config):
        config.storage.max_file_size_bytes = 16
        with TestClient(create_app(config)) as client:
            resp = client.post("/all", content=b"x" * (16 + MULTIPART_OVERHEAD_BYTES + 1))
        assert resp.status_code == 405


class TestDevelopmentMode:
    @pytest.fixture
    def dev_client(self, config):
        config.server.environment = "development"
        with TestClient(create_app(config)) as client:
            yield client

    def test_upload_failure_exposes_detail(self, dev_client):
        dev_client.app.state.store.insert_image = AsyncMock(
            side_effect=StoreError("Database insert failed")
        )
        resp = _upload(dev_client)
        assert resp.status_code == 500
        assert resp.json() == {"error": "upload_failed", "message": "Database insert failed"}

    def test_fetch_failure_exposes_detail(self, dev_client):
        dev_client.app.state.store.list_images = AsyncMock(
            side_effect=StoreError("Database query failed")
        )
        resp = dev_client.get("/all")
        assert resp.status_code == 500
        assert resp.json()["message"] == "Database query failed"


class TestListImages:
    def test_empty(self, api_client):
        resp = api_client.get("/all")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "count": 0, "data": []}

    def test_newest_first(self, api_client):
        ids = [_upload(api_client, name=f"image {i}").json()["id"] for i in range(3)]

        body = api_client.get("/all").json()
        assert body["count"] == 3
        assert [image["id"] for image in body["data"]] == list(reversed(ids))
        first = body["data"][0]
        assert set(first) == {"id", "name", "description", "author", "path", "created_at"}
        assert first["name"] == "image 2"

    def test_store_failure(self, api_client):
        api_client.app.state.store.list_images = AsyncMock(
            side_effect=StoreError("Database query failed")
        )
        resp = api_client.get("/all")
        assert resp.status_code == 500
        assert resp.json() == {"error": "fetch_failed", "message": "Failed to fetch images"}


class TestServeImage:
    def test_serves_uploaded_file(self, api_client):
        file_name = _upload(api_client).json()["fileName"]
        resp = api_client.get(f"/images/{file_name}")
        assert resp.status_code == 200
        assert resp.content == PNG_BYTES

    def test_missing_file(self, api_client):
        resp = api_client.get("/images/00000000-0000-4000-8000-000000000000.png")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_rejects_traversal(self, api_client):
        resp = api_client.get("/images/..%5Cgallery.duckdb")
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_filename"
