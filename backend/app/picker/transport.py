"""Request/response boundary between the picker and the media service.

The picker never talks to the platform. It exchanges ``Asset`` records and
opaque ids through a ``MediaTransport``: either in-process
(``ServiceTransport``) or over the ``/api/media`` HTTP endpoints
(``HttpMediaTransport``).
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from app.models.media import Asset, AssetList, AssetPage
from app.services.media_backend import LocalFile
from app.services.media_errors import MediaServiceError, TransientNetworkError
from app.services.media_service import MediaService


class MediaRequestError(MediaServiceError):
    """Non-2xx answer from the media API."""

    def __init__(self, message: str, status_code: int, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _error_detail(resp: httpx.Response) -> Any:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or None
    if isinstance(body, dict) and body.get("detail") is not None:
        return body["detail"]
    # Bodies from the request middleware carry "message" at the top level.
    return body


def _error_message(detail: Any) -> Optional[str]:
    if isinstance(detail, dict):
        message = detail.get("message")
        return str(message) if message else None
    if isinstance(detail, list):
        # FastAPI request validation: [{"loc": [...], "msg": "...", ...}, ...]
        messages = [str(d.get("msg")) for d in detail if isinstance(d, dict) and d.get("msg")]
        return "; ".join(messages) or None
    if isinstance(detail, str):
        return detail.strip() or None
    return None


class MediaTransport(Protocol):

    async def list(self, first: int, after: Optional[str]) -> AssetPage:
        ...

    async def upload(self, files: Sequence[LocalFile]) -> List[Asset]:
        ...

    async def resolve(self, ids: Sequence[str]) -> List[Asset]:
        ...


class ServiceTransport:

    def __init__(self, service: MediaService):
        self.service = service

    async def list(self, first: int, after: Optional[str]) -> AssetPage:
        return await self.service.list_assets(first, after)

    async def upload(self, files: Sequence[LocalFile]) -> List[Asset]:
        return await self.service.upload(files)

    async def resolve(self, ids: Sequence[str]) -> List[Asset]:
        return await self.service.resolve_by_ids(ids)


class HttpMediaTransport:
    """Talks to a running admin backend, e.g. ``http://localhost:8000``."""

    def __init__(
        self,
        base_url: str,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout
        self._headers = headers or {}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = f"{self.base_url}/api/media{path}"
        try:
            if self._http_client is not None:
                resp = await self._http_client.request(method, url, headers=self._headers, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, url, headers=self._headers, **kwargs)
        except httpx.RequestError as exc:
            raise TransientNetworkError(f"Media API request error: {exc}") from exc

        if resp.status_code >= 400:
            detail = _error_detail(resp)
            raise MediaRequestError(
                _error_message(detail) or f"Media API returned {resp.status_code}",
                status_code=resp.status_code,
                detail=detail,
            )
        return resp.json()

    async def list(self, first: int, after: Optional[str]) -> AssetPage:
        params: Dict[str, Any] = {"first": first}
        if after:
            params["after"] = after
        data = await self._request("GET", "/list", params=params)
        return AssetPage.model_validate(data)

    async def upload(self, files: Sequence[LocalFile]) -> List[Asset]:
        multipart = [("files", (f.upload_name, f.content, f.upload_mime_type)) for f in files]
        data = await self._request("POST", "/upload", files=multipart)
        return AssetList.model_validate(data).images

    async def resolve(self, ids: Sequence[str]) -> List[Asset]:
        data = await self._request("POST", "/resolve", json={"ids": list(ids)})
        return AssetList.model_validate(data).images
