"""Remote capabilities the media service depends on.

``MediaBackend`` is the seam between the media service and the platform: list
files, look files up by id, create staged upload slots, push bytes to a slot
and register uploaded objects as Files. ``AdminMediaBackend`` implements it on
top of the Admin GraphQL API; tests substitute an in-memory fake.

Backends report per-item ``userErrors`` as data and leave the decision of what
is fatal to the service; transport-level problems are raised.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from app.services import gql_docs
from app.services.admin_gql import AdminGraphQLClient

DEFAULT_UPLOAD_FILENAME = "upload.jpg"
DEFAULT_UPLOAD_MIME_TYPE = "image/jpeg"


@dataclass
class LocalFile:
    """A file picked by the editor, already read into memory."""

    name: str
    mime_type: str
    content: bytes

    @property
    def upload_name(self) -> str:
        return self.name or DEFAULT_UPLOAD_FILENAME

    @property
    def upload_mime_type(self) -> str:
        return self.mime_type or DEFAULT_UPLOAD_MIME_TYPE


@dataclass
class UploadSlotRequest:
    filename: str
    mime_type: str


@dataclass
class UploadSlot:
    target_url: str
    resource_location: str
    form_parameters: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class RegisterResource:
    source_location: str
    alt_text: str


@dataclass
class RawFilePage:
    nodes: List[Dict[str, Any]]
    has_next_page: bool = False
    end_cursor: Optional[str] = None


@dataclass
class StagingResult:
    slots: List[UploadSlot]
    errors: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class RegistrationResult:
    created: List[Dict[str, Any]]
    errors: List[Dict[str, Any]] = field(default_factory=list)


class MediaBackend(Protocol):

    async def list(self, first: int, after: Optional[str]) -> RawFilePage:
        ...

    async def resolve_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        ...

    async def create_upload_slots(self, requests: Sequence[UploadSlotRequest]) -> StagingResult:
        ...

    async def transfer(self, slot: UploadSlot, file: LocalFile) -> None:
        ...

    async def register_assets(self, resources: Sequence[RegisterResource]) -> RegistrationResult:
        ...


class AdminMediaBackend:
    """``MediaBackend`` over the Admin GraphQL API (Files + staged uploads)."""

    def __init__(self, client: Optional[AdminGraphQLClient] = None):
        self.client = client or AdminGraphQLClient()

    async def list(self, first: int, after: Optional[str]) -> RawFilePage:
        variables: Dict[str, Any] = {"first": first}
        if after:
            variables["after"] = after
        data = await self.client.execute(gql_docs.Q_FILES_LIST, variables)
        files = data.get("files") or {}
        page_info = files.get("pageInfo") or {}
        return RawFilePage(
            nodes=list(files.get("nodes") or []),
            has_next_page=bool(page_info.get("hasNextPage")),
            end_cursor=page_info.get("endCursor"),
        )

    async def resolve_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        data = await self.client.execute(gql_docs.Q_FILES_BY_IDS, {"ids": list(ids)})
        return list(data.get("nodes") or [])

    async def create_upload_slots(self, requests: Sequence[UploadSlotRequest]) -> StagingResult:
        inputs = [
            {
                "resource": "IMAGE",
                "filename": r.filename,
                "mimeType": r.mime_type,
                "httpMethod": "POST",
            }
            for r in requests
        ]
        data = await self.client.execute(gql_docs.M_STAGED_UPLOADS_CREATE, {"inputs": inputs})
        payload = data.get("stagedUploadsCreate") or {}
        slots = [
            UploadSlot(
                target_url=t.get("url") or "",
                resource_location=t.get("resourceUrl") or "",
                form_parameters=[(p.get("name"), p.get("value")) for p in (t.get("parameters") or [])],
            )
            for t in (payload.get("stagedTargets") or [])
        ]
        return StagingResult(slots=slots, errors=list(payload.get("userErrors") or []))

    async def transfer(self, slot: UploadSlot, file: LocalFile) -> None:
        await self.client.transfer(
            slot.target_url,
            slot.form_parameters,
            file.upload_name,
            file.content,
            file.upload_mime_type,
        )

    async def register_assets(self, resources: Sequence[RegisterResource]) -> RegistrationResult:
        files = [
            {
                "originalSource": r.source_location,
                "alt": r.alt_text,
                "contentType": "IMAGE",
            }
            for r in resources
        ]
        data = await self.client.execute(gql_docs.M_FILE_CREATE, {"files": files})
        payload = data.get("fileCreate") or {}
        return RegistrationResult(
            created=list(payload.get("files") or []),
            errors=list(payload.get("userErrors") or []),
        )
