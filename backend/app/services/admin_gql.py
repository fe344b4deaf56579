"""Thin async client for the platform's Admin GraphQL API.

The client knows nothing about files or media; it only posts documents,
classifies failures into the media error taxonomy and performs the raw
multipart POST used by staged uploads. Retrying is left to callers.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple, Type

import httpx

from app.config import settings
from app.services.media_errors import (
    AdminApiConfigError,
    AdminApiError,
    TransferError,
    TransientNetworkError,
    ValidationError,
)
from app.utils.logger import AdminApiLogger, admin_api_logger, logger

_OPERATION_RE = re.compile(r"\b(query|mutation)\s+(\w+)")


def _operation_name(query: str) -> str:
    match = _OPERATION_RE.search(query or "")
    return match.group(2) if match else "anonymous"


def raise_for_user_errors(
    operation: str,
    user_errors: Optional[Sequence[Dict[str, Any]]],
    error_cls: Type[ValidationError] = ValidationError,
) -> None:
    """Raise ``error_cls`` when a mutation payload reported ``userErrors``.

    Mutations report per-item validation problems in ``<op>.userErrors``
    instead of the top-level ``errors`` array, so a 200 response can still be
    a failure. Messages are joined with "; " and the entries kept verbatim.
    """

    if not user_errors:
        return
    messages = "; ".join(
        str(e.get("message") or e) if isinstance(e, dict) else str(e) for e in user_errors
    )
    raise error_cls(f"{operation}: {messages}", user_errors=list(user_errors))


class AdminGraphQLClient:

    def __init__(
        self,
        *,
        graphql_url: Optional[str] = None,
        access_token: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[httpx.Timeout] = None,
        api_logger: AdminApiLogger = admin_api_logger,
    ):
        self._graphql_url = graphql_url
        self._access_token = access_token
        self._http_client = http_client
        self._timeout = timeout
        self._api_logger = api_logger

    @property
    def graphql_url(self) -> str:
        if self._graphql_url:
            return self._graphql_url
        if not (settings.SHOP_DOMAIN or "").strip():
            raise AdminApiConfigError("SHOP_DOMAIN is not configured")
        return settings.admin_graphql_url

    @property
    def access_token(self) -> str:
        token = self._access_token or settings.ADMIN_API_ACCESS_TOKEN
        if not token:
            raise AdminApiConfigError("ADMIN_API_ACCESS_TOKEN is not configured")
        return token

    def _default_timeout(self) -> httpx.Timeout:
        if self._timeout is not None:
            return self._timeout
        return httpx.Timeout(
            settings.ADMIN_API_TIMEOUT_SECONDS,
            connect=settings.ADMIN_API_CONNECT_TIMEOUT_SECONDS,
        )

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, **kwargs)
        async with httpx.AsyncClient(timeout=self._default_timeout()) as client:
            return await client.post(url, **kwargs)

    async def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one GraphQL document and return its ``data`` object."""

        operation = _operation_name(query)
        url = self.graphql_url
        headers = {
            "X-Shopify-Access-Token": self.access_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        try:
            resp = await self._post(url, headers=headers, json={"query": query, "variables": variables or {}})
        except httpx.RequestError as exc:
            self._api_logger.log_admin_event(
                "graphql", f"{operation} request error", status="error", error=str(exc)
            )
            raise TransientNetworkError(f"Admin API request error ({operation}): {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            self._api_logger.log_admin_event(
                "graphql",
                f"{operation} transient status={resp.status_code}",
                status="error",
                error=resp.text[:500],
            )
            raise TransientNetworkError(
                f"Admin API {operation} returned {resp.status_code}",
                status_code=resp.status_code,
            )

        if resp.status_code != 200:
            self._api_logger.log_admin_event(
                "graphql",
                f"{operation} failed status={resp.status_code}",
                status="error",
                error=resp.text[:500],
            )
            raise AdminApiError(
                f"Admin API {operation} returned {resp.status_code}: {resp.text[:300]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise AdminApiError(f"Admin API {operation} returned non-JSON body") from exc

        errors = (body or {}).get("errors") or []
        if errors:
            codes = {
                ((e or {}).get("extensions") or {}).get("code")
                for e in errors
                if isinstance(e, dict)
            }
            if "THROTTLED" in codes:
                self._api_logger.log_admin_event("graphql", f"{operation} throttled", status="warning")
                raise TransientNetworkError(f"Admin API {operation} throttled", status_code=resp.status_code)
            messages = "; ".join(str((e or {}).get("message") or e) for e in errors)
            self._api_logger.log_admin_event(
                "graphql", f"{operation} returned errors", status="error", error=messages
            )
            raise AdminApiError(f"Admin GraphQL errors ({operation}): {messages}", errors=errors)

        data = (body or {}).get("data")
        if not data:
            raise AdminApiError(f"Admin GraphQL: empty response ({operation})")

        self._api_logger.log_admin_event(
            "graphql",
            f"{operation} ok",
            request_data={"variables": _summarize_variables(variables)},
        )
        return data

    async def transfer(
        self,
        url: str,
        parameters: Iterable[Tuple[str, str]],
        filename: str,
        content: bytes,
        mime_type: str,
    ) -> None:
        """POST one file to a staged upload target.

        Form fields are sent in the order the slot listed them and the file goes
        last under ``file``; presigned-POST targets reject any other layout.
        """

        form = {name: value for name, value in parameters}
        files = {"file": (filename, content, mime_type)}

        try:
            resp = await self._post(url, data=form, files=files)
        except httpx.RequestError as exc:
            self._api_logger.log_admin_event(
                "transfer", f"{filename} request error", status="error", error=str(exc)
            )
            raise TransientNetworkError(f"Staged upload request error for {filename}: {exc}") from exc

        if 200 <= resp.status_code < 300:
            self._api_logger.log_admin_event(
                "transfer",
                f"{filename} uploaded ({len(content)} bytes)",
                request_data=dict(form),
            )
            return

        body = resp.text
        logger.warning("Staged upload of %s failed status=%s body=%s", filename, resp.status_code, body[:500])
        self._api_logger.log_admin_event(
            "transfer",
            f"{filename} failed status={resp.status_code}",
            request_data=dict(form),
            status="error",
            error=body[:500],
        )
        raise TransferError(
            f"Staged upload failed for {filename}: {resp.status_code}",
            status_code=resp.status_code,
            body=body,
        )


def _summarize_variables(variables: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {}
    for key, value in (variables or {}).items():
        if isinstance(value, list):
            summary[key] = f"<{len(value)} items>"
        else:
            summary[key] = value
    return summary
