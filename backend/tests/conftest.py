from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import pytest

from app.services.media_backend import (
    LocalFile,
    RawFilePage,
    RegisterResource,
    RegistrationResult,
    StagingResult,
    UploadSlot,
    UploadSlotRequest,
)
from app.services.media_service import MediaService
from app.services.retry import NO_DELAY


def image_node(n: int, *, preview: bool = True) -> Dict[str, Any]:
    node: Dict[str, Any] = {
        "__typename": "MediaImage",
        "id": f"gid://shopify/MediaImage/{n}",
        "alt": f"alt {n}",
        "originalSource": {"url": f"https://cdn.example.com/files/photo-{n}.jpg"},
    }
    if preview:
        node["preview"] = {"image": {"url": f"https://cdn.example.com/preview/photo-{n}.jpg?w=200"}}
    else:
        node["originalSource"] = None
    return node


class FakeMediaBackend:
    """In-memory stand-in for the Admin API media capabilities."""

    def __init__(self, nodes: Optional[List[Dict[str, Any]]] = None):
        self.nodes: List[Dict[str, Any]] = list(nodes or [])
        self.list_calls: List[tuple] = []
        self.resolve_calls: List[List[str]] = []
        self.staging_calls: List[List[UploadSlotRequest]] = []
        self.transfer_calls: List[tuple] = []
        self.register_calls: List[List[RegisterResource]] = []

        self.list_failures: List[Exception] = []
        self.resolve_failures: List[Exception] = []
        self.staging_failures: List[Exception] = []
        self.transfer_failures: Dict[str, List[Exception]] = {}
        self.register_failures: List[Exception] = []

        self.staging_errors: List[Dict[str, Any]] = []
        self.register_errors: List[Dict[str, Any]] = []
        self.slot_count: Optional[int] = None
        self._next_id = 1000

    async def list(self, first: int, after: Optional[str]) -> RawFilePage:
        self.list_calls.append((first, after))
        if self.list_failures:
            raise self.list_failures.pop(0)
        start = int(after) if after else 0
        chunk = self.nodes[start:start + first]
        end = start + len(chunk)
        return RawFilePage(
            nodes=chunk,
            has_next_page=end < len(self.nodes),
            end_cursor=str(end) if chunk else None,
        )

    async def resolve_by_ids(self, ids: Sequence[str]) -> List[Dict[str, Any]]:
        self.resolve_calls.append(list(ids))
        if self.resolve_failures:
            raise self.resolve_failures.pop(0)
        wanted = set(ids)
        return [n for n in self.nodes if n["id"] in wanted]

    async def create_upload_slots(self, requests: Sequence[UploadSlotRequest]) -> StagingResult:
        self.staging_calls.append(list(requests))
        if self.staging_failures:
            raise self.staging_failures.pop(0)
        count = len(requests) if self.slot_count is None else self.slot_count
        slots = [
            UploadSlot(
                target_url="https://storage.example.com/staged",
                resource_location=f"https://storage.example.com/tmp/{i}/{requests[i].filename}",
                form_parameters=[("key", f"tmp/{i}"), ("policy", "p0l1cy")],
            )
            for i in range(min(count, len(requests)))
        ]
        slots.extend(
            UploadSlot(target_url="https://storage.example.com/staged", resource_location="https://x/extra")
            for _ in range(max(0, count - len(requests)))
        )
        return StagingResult(slots=slots, errors=list(self.staging_errors))

    async def transfer(self, slot: UploadSlot, file: LocalFile) -> None:
        self.transfer_calls.append((slot.target_url, file.upload_name))
        failures = self.transfer_failures.get(file.upload_name) or []
        if failures:
            raise failures.pop(0)

    async def register_assets(self, resources: Sequence[RegisterResource]) -> RegistrationResult:
        self.register_calls.append(list(resources))
        if self.register_failures:
            raise self.register_failures.pop(0)
        if self.register_errors:
            return RegistrationResult(created=[], errors=list(self.register_errors))
        created = []
        stored = []
        for resource in resources:
            self._next_id += 1
            node = {
                "__typename": "MediaImage",
                "id": f"gid://shopify/MediaImage/{self._next_id}",
                "alt": resource.alt_text,
                "preview": None,
                "image": None,
            }
            # fileCreate answers while the File is still processing (no URLs);
            # later reads see the original source.
            created.append({**node, "originalSource": None})
            stored.append({**node, "originalSource": {"url": resource.source_location}})
        self.nodes = stored + self.nodes
        return RegistrationResult(created=created)


@pytest.fixture
def fake_backend() -> FakeMediaBackend:
    return FakeMediaBackend([image_node(i) for i in range(1, 6)])


@pytest.fixture
def service(fake_backend: FakeMediaBackend) -> MediaService:
    return MediaService(backend=fake_backend, retry_policy=NO_DELAY)


@pytest.fixture
def make_node():
    return image_node
