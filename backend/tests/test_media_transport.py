import asyncio

import httpx
import pytest

from app.main import app
from app.picker import HttpMediaTransport, MediaLibraryController, MediaPickerController, MediaRequestError
from app.routers import media
from app.services.media_backend import LocalFile
from app.services.media_errors import TransientNetworkError


@pytest.fixture
def http_transport(service):
    app.dependency_overrides[media.get_media_service] = lambda: service
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    yield HttpMediaTransport("http://admin.test/", http_client=client)
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_http_transport_lists_uploads_and_resolves(http_transport):
    page = await http_transport.list(2, None)
    assert [a.id for a in page.images] == ["gid://shopify/MediaImage/1", "gid://shopify/MediaImage/2"]
    assert page.page_info.end_cursor == "2"

    uploaded = await http_transport.upload([LocalFile(name="a.jpg", mime_type="image/jpeg", content=b"a")])
    assert [a.filename for a in uploaded] == ["a.jpg"]

    resolved = await http_transport.resolve([uploaded[0].id])
    assert [a.id for a in resolved] == [uploaded[0].id]


@pytest.mark.asyncio
async def test_http_transport_raises_with_server_message(http_transport, fake_backend):
    fake_backend.slot_count = 0
    with pytest.raises(MediaRequestError) as excinfo:
        await http_transport.upload([LocalFile(name="a.jpg", mime_type="image/jpeg", content=b"a")])
    assert excinfo.value.status_code == 502
    assert excinfo.value.detail["phase"] == "protocol"
    assert "staged targets" in str(excinfo.value)


def _answering(status_code, **kwargs) -> HttpMediaTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(status_code, **kwargs)))
    return HttpMediaTransport("http://admin.test", http_client=client)


@pytest.mark.asyncio
async def test_http_transport_reads_message_from_middleware_error_body():
    transport = _answering(500, json={"error": "internal_error", "rid": "abcd1234", "message": "boom"})
    with pytest.raises(MediaRequestError) as excinfo:
        await transport.list(30, None)
    assert str(excinfo.value) == "boom"
    assert excinfo.value.status_code == 500


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs, expected", [
    ({"json": {"error": "internal_error"}}, "Media API returned 500"),
    ({"json": ["unexpected", "shape"]}, "Media API returned 500"),
    ({"text": ""}, "Media API returned 500"),
    ({"text": "Bad Gateway"}, "Bad Gateway"),
])
async def test_http_transport_never_reports_none(kwargs, expected):
    with pytest.raises(MediaRequestError) as excinfo:
        await _answering(500, **kwargs).list(30, None)
    assert str(excinfo.value) == expected


@pytest.mark.asyncio
async def test_http_transport_joins_request_validation_messages():
    detail = [{"loc": ["query", "first"], "msg": "Input should be a valid integer", "type": "int_parsing"}]
    with pytest.raises(MediaRequestError) as excinfo:
        await _answering(422, json={"detail": detail}).list(30, None)
    assert str(excinfo.value) == "Input should be a valid integer"
    assert excinfo.value.detail == detail


@pytest.mark.asyncio
async def test_http_transport_connection_failure_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = HttpMediaTransport(
        "http://admin.test", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
    )
    with pytest.raises(TransientNetworkError):
        await transport.list(30, None)


@pytest.mark.asyncio
async def test_picker_over_http(http_transport):
    picker = MediaPickerController(http_transport, page_size=30, debounce_seconds=0, refresh_delay_seconds=0)
    await picker.open()
    picker.toggle("gid://shopify/MediaImage/2")
    result = picker.confirm()
    assert result.to_dict()["galleryIds"] == ["gid://shopify/MediaImage/2"]
    assert result.nodes[0].filename == "photo-2.jpg"


@pytest.mark.asyncio
async def test_library_controller_refresh_and_upload(http_transport):
    library = MediaLibraryController(http_transport, refresh_delay_seconds=0)
    assert await library.refresh()
    assert len(library.library) == 5

    records = await library.upload([LocalFile(name="b.jpg", mime_type="image/jpeg", content=b"b")])
    assert library.library[0].id == records[0].id
    await library.settle()
    assert library.library[0].id == records[0].id
    assert len(library.library) == 6
    library.close()


@pytest.mark.asyncio
async def test_library_close_cancels_every_pending_refresh(http_transport):
    library = MediaLibraryController(http_transport, refresh_delay_seconds=60)
    await library.upload([LocalFile(name="a.jpg", mime_type="image/jpeg", content=b"a")])
    await library.upload([LocalFile(name="b.jpg", mime_type="image/jpeg", content=b"b")])
    pending = list(library._refresh_tasks)
    assert len(pending) == 2

    library.close()
    await asyncio.gather(*pending, return_exceptions=True)
    assert all(task.cancelled() for task in pending)
