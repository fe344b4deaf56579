"""Media library service: list Files, resolve Files by id, upload local files.

Uploads run the platform's three-phase staged upload:

1. *stage*    - ``stagedUploadsCreate`` returns one presigned target per file;
2. *transfer* - each file is POSTed straight to its target (object storage);
3. *register* - ``fileCreate`` turns the uploaded objects into Files.

Each phase has its own retry budget (``RetryPolicy``). The call is
all-or-nothing: if any phase fails terminally the exception propagates and no
partial list is returned.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from app.config import settings
from app.models.media import Asset, AssetPage, PageInfo
from app.services.admin_gql import raise_for_user_errors
from app.services.media_backend import (
    AdminMediaBackend,
    LocalFile,
    MediaBackend,
    RegisterResource,
    UploadSlot,
    UploadSlotRequest,
)
from app.services.media_errors import (
    ProtocolInvariantError,
    RegistrationError,
    StagingError,
    TransferError,
    TransientNetworkError,
)
from app.services.media_normalize import (
    GenericFileNode,
    normalize_nodes,
    parse_node,
    to_asset,
)
from app.services.retry import RetryPolicy, with_retry
from app.utils.logger import logger

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 250


def clamp_page_size(page_size: Optional[int]) -> int:
    try:
        size = int(page_size)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        size = MIN_PAGE_SIZE
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, size))


class MediaService:

    def __init__(self, backend: Optional[MediaBackend] = None, retry_policy: Optional[RetryPolicy] = None):
        self.backend = backend if backend is not None else AdminMediaBackend()
        self.retry_policy = retry_policy or settings.media_retry_policy

    async def list_assets(self, page_size: int, after: Optional[str] = None) -> AssetPage:
        """Fetch one page of the Files library.

        Every call is a fresh round trip: pages are neither cached nor
        de-duplicated against each other. Nodes without a usable preview are
        dropped, so a page may hold fewer than ``page_size`` records.
        """

        first = clamp_page_size(page_size)
        raw = await with_retry(
            lambda: self.backend.list(first, after or None),
            self.retry_policy,
            label="files list",
        )
        images = normalize_nodes(raw.nodes)
        logger.info(
            "Listed media page first=%s after=%s -> %s/%s renderable, has_next=%s",
            first,
            after,
            len(images),
            len(raw.nodes),
            raw.has_next_page,
        )
        return AssetPage(
            images=images,
            page_info=PageInfo(has_next_page=raw.has_next_page, end_cursor=raw.end_cursor),
        )

    async def resolve_by_ids(self, ids: Iterable[Optional[str]]) -> List[Asset]:
        """Resolve File ids to records, in the order the platform returns them.

        Falsy and duplicate ids are dropped first; an empty request never
        reaches the platform.
        """

        clean: List[str] = []
        for file_id in ids or []:
            if file_id and file_id not in clean:
                clean.append(file_id)
        if not clean:
            return []

        nodes = await with_retry(
            lambda: self.backend.resolve_by_ids(clean),
            self.retry_policy,
            label="files by ids",
        )
        return normalize_nodes(nodes)

    async def upload(self, files: Sequence[LocalFile]) -> List[Asset]:
        files = list(files or [])
        if not files:
            return []

        logger.info("Uploading %s local file(s): %s", len(files), [f.upload_name for f in files])
        slots = await self._stage(files)
        for slot, local_file in zip(slots, files):
            await self._transfer(slot, local_file)
        assets = await self._register(slots, files)
        logger.info("Upload finished: %s", [a.id for a in assets])
        return assets

    async def _stage(self, files: List[LocalFile]) -> List[UploadSlot]:
        requests = [UploadSlotRequest(filename=f.upload_name, mime_type=f.upload_mime_type) for f in files]

        async def attempt():
            result = await self.backend.create_upload_slots(requests)
            raise_for_user_errors("stagedUploadsCreate", result.errors, StagingError)
            return result.slots

        slots = await with_retry(attempt, self.retry_policy, label="staged uploads create")
        if len(slots) != len(files):
            raise ProtocolInvariantError(
                f"staged targets count mismatch: requested {len(files)}, got {len(slots)}"
            )
        return slots

    async def _transfer(self, slot: UploadSlot, local_file: LocalFile) -> None:
        try:
            await with_retry(
                lambda: self.backend.transfer(slot, local_file),
                self.retry_policy,
                retry_on=(TransientNetworkError, TransferError),
                label=f"staged upload of {local_file.upload_name}",
            )
        except TransientNetworkError as exc:
            raise TransferError(
                f"Staged upload failed for {local_file.upload_name}: {exc}",
                status_code=exc.status_code,
            ) from exc

    async def _register(self, slots: List[UploadSlot], files: List[LocalFile]) -> List[Asset]:
        resources = [
            RegisterResource(source_location=slot.resource_location, alt_text=f.name or "")
            for slot, f in zip(slots, files)
        ]

        async def attempt():
            result = await self.backend.register_assets(resources)
            raise_for_user_errors("fileCreate", result.errors, RegistrationError)
            return result.created

        created = await with_retry(attempt, self.retry_policy, label="file create")
        if len(created) != len(resources):
            raise ProtocolInvariantError(
                f"fileCreate returned {len(created)} files for {len(resources)} resources"
            )

        assets: List[Asset] = []
        for raw, resource in zip(created, resources):
            node = parse_node(raw or {})
            # Freshly created Files are still processing and often come back
            # without any URL; the staged resource is their original source.
            if isinstance(node, GenericFileNode):
                node.url = node.url or resource.source_location
            elif not node.original_source_url:
                node.original_source_url = resource.source_location
            asset = to_asset(node)
            if asset is not None:
                assets.append(asset)
        return assets


media_service = MediaService()
