import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.routers import media
from app.services.media_errors import (
    AdminApiConfigError,
    AdminApiError,
    TransferError,
    TransientNetworkError,
)
from app.utils.logger import admin_api_logger


@pytest.fixture
def client(service):
    app.dependency_overrides[media.get_media_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")


def test_list_returns_images_and_camel_case_page_info(client, fake_backend):
    resp = client.get("/api/media/list", params={"first": 2})
    assert resp.status_code == 200
    body = resp.json()
    assert [i["id"] for i in body["images"]] == ["gid://shopify/MediaImage/1", "gid://shopify/MediaImage/2"]
    assert body["pageInfo"] == {"hasNextPage": True, "endCursor": "2"}
    assert set(body["images"][0]) == {"id", "preview", "filename", "label"}

    resp = client.get("/api/media/list", params={"first": 2, "after": "4"})
    assert [i["id"] for i in resp.json()["images"]] == ["gid://shopify/MediaImage/5"]
    assert fake_backend.list_calls[-1] == (2, "4")


def test_list_uses_library_page_size_by_default(client, fake_backend):
    client.get("/api/media/list")
    assert fake_backend.list_calls == [(120, None)]


@pytest.mark.parametrize("first, expected", [("0", 1), ("-3", 1), ("9999", 250)])
def test_list_clamps_explicit_page_size(client, fake_backend, first, expected):
    resp = client.get("/api/media/list", params={"first": first})
    assert resp.status_code == 200
    assert fake_backend.list_calls == [(expected, None)]


def test_resolve(client, fake_backend):
    resp = client.post("/api/media/resolve", json={"ids": ["gid://shopify/MediaImage/3", None, ""]})
    assert resp.status_code == 200
    assert [i["id"] for i in resp.json()["images"]] == ["gid://shopify/MediaImage/3"]

    resp = client.post("/api/media/resolve", json={"ids": []})
    assert resp.json() == {"images": []}
    assert fake_backend.resolve_calls == [["gid://shopify/MediaImage/3"]]


def test_upload_multipart(client, fake_backend):
    resp = client.post(
        "/api/media/upload",
        files=[
            ("files", ("harbour.jpg", b"jpeg-bytes", "image/jpeg")),
            ("files", ("dunes.png", b"png-bytes", "image/png")),
        ],
    )
    assert resp.status_code == 200
    images = resp.json()["images"]
    assert [i["filename"] for i in images] == ["harbour.jpg", "dunes.png"]
    assert [r.mime_type for r in fake_backend.staging_calls[0]] == ["image/jpeg", "image/png"]


def test_upload_validation_errors_map_to_422(client, fake_backend):
    fake_backend.staging_errors = [{"field": ["input", "0"], "message": "Mime type is invalid"}]
    resp = client.post("/api/media/upload", files=[("files", ("a.heic", b"x", "image/heic"))])
    assert resp.status_code == 422
    detail = resp.json()["detail"]
    assert detail["phase"] == "stage"
    assert detail["user_errors"] == [{"field": ["input", "0"], "message": "Mime type is invalid"}]


def test_upload_protocol_and_transfer_failures_map_to_502(client, fake_backend):
    fake_backend.slot_count = 0
    resp = client.post("/api/media/upload", files=[("files", ("a.jpg", b"x", "image/jpeg"))])
    assert resp.status_code == 502
    assert resp.json()["detail"]["phase"] == "protocol"

    fake_backend.slot_count = None
    fake_backend.transfer_failures = {"a.jpg": [TransferError("403", status_code=403, body="AccessDenied")] * 3}
    resp = client.post("/api/media/upload", files=[("files", ("a.jpg", b"x", "image/jpeg"))])
    assert resp.status_code == 502
    detail = resp.json()["detail"]
    assert detail["phase"] == "transfer"
    assert detail["status_code"] == 403
    assert detail["body"] == "AccessDenied"


@pytest.mark.parametrize("error, expected", [
    (TransientNetworkError("throttled", status_code=429), 503),
    (AdminApiError("access denied", status_code=403), 502),
    (AdminApiConfigError("SHOP_DOMAIN is not configured"), 500),
])
def test_list_error_mapping(client, fake_backend, error, expected):
    fake_backend.list_failures = [error] * 3
    resp = client.get("/api/media/list")
    assert resp.status_code == expected
    assert resp.json()["detail"]["message"]


def test_intent_list_and_upload(client):
    resp = client.post("/api/media", data={"intent": "media.list", "first": "3"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["intent"] == "media.list"
    assert len(body["images"]) == 3
    assert body["pageInfo"]["hasNextPage"] is True

    resp = client.post(
        "/api/media",
        data={"intent": "media.uploadLocal"},
        files=[("files", ("a.jpg", b"x", "image/jpeg"))],
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["intent"] == "media.uploadLocal"
    assert [i["filename"] for i in body["images"]] == ["a.jpg"]


def test_unknown_intent_is_acknowledged(client, fake_backend):
    resp = client.post("/api/media", data={"intent": "media.somethingElse"})
    assert resp.json() == {"ok": True}
    assert fake_backend.list_calls == []


def test_logs_endpoint(client):
    admin_api_logger.clear_logs()
    admin_api_logger.log_admin_event("graphql", "FilesList ok")
    resp = client.get("/api/media/logs", params={"limit": 5})
    assert resp.status_code == 200
    logs = resp.json()["logs"]
    assert logs[-1]["description"] == "FilesList ok"
    admin_api_logger.clear_logs()
