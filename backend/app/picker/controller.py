"""Media picker controller.

Drives the media service through a ``MediaTransport`` and keeps the picker's
ephemeral state: the current library page, the cursor stack, the selection
with its hero, and the request flags used for rendering.

Browsing requests are serialized by one in-flight flag per instance. Upload
requests have their own flag, so a listing fetch and an upload can run at the
same time. Responses are tagged with a generation number; anything that
arrives after the picker was closed or reopened is discarded.

All methods must be called from the event loop that owns the instance.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from app.config import PICKER_PAGE_SIZE_OPTIONS, settings
from app.models.media import Asset, PageInfo
from app.picker.state import CursorStack, PageCursor, SelectionState
from app.picker.transport import MediaTransport
from app.services.media_backend import LocalFile
from app.services.media_errors import MediaServiceError
from app.services.media_normalize import parse_node, to_asset
from app.utils.logger import logger

InitialItem = Union[str, Asset, Dict[str, Any]]


@dataclass
class PickerResult:
    hero_id: Optional[str]
    gallery_ids: List[str]
    nodes: List[Asset] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heroId": self.hero_id,
            "galleryIds": list(self.gallery_ids),
            "nodes": [n.model_dump() for n in self.nodes],
        }


def coerce_initial_selection(items: Optional[Iterable[InitialItem]]) -> tuple:
    """Split an embedding form's initial selection into ids and known records.

    Items may be bare ids, ``Asset`` records, already-normalized dicts
    (``{"id", "preview", ...}``) or platform-shaped dicts such as
    ``{"id", "image": {"url"}}``.
    """

    ids: List[str] = []
    records: Dict[str, Asset] = {}
    for item in items or []:
        if isinstance(item, str):
            asset_id = item
        elif isinstance(item, Asset):
            asset_id = item.id
            records[asset_id] = item
        elif isinstance(item, dict):
            asset_id = item.get("id") or ""
            if item.get("preview") and asset_id:
                filename = item.get("filename") or item.get("label") or asset_id
                records[asset_id] = Asset(
                    id=asset_id,
                    preview=item["preview"],
                    filename=filename,
                    label=item.get("label") or filename,
                )
            elif asset_id:
                asset = to_asset(parse_node(item))
                if asset is not None:
                    records[asset_id] = asset
        else:
            continue
        if asset_id and asset_id not in ids:
            ids.append(asset_id)
    return ids, records


class MediaPickerController:

    def __init__(
        self,
        transport: MediaTransport,
        *,
        multiple: bool = True,
        page_size: Optional[int] = None,
        debounce_seconds: Optional[float] = None,
        refresh_delay_seconds: Optional[float] = None,
        on_confirm: Optional[Callable[[PickerResult], Any]] = None,
        on_close: Optional[Callable[[], Any]] = None,
    ):
        self.transport = transport
        self.multiple = multiple
        self.page_size = page_size or settings.MEDIA_PICKER_PAGE_SIZE
        if debounce_seconds is None:
            debounce_seconds = settings.MEDIA_PICKER_DEBOUNCE_SECONDS
        if refresh_delay_seconds is None:
            refresh_delay_seconds = settings.MEDIA_REFRESH_DELAY_SECONDS
        self.debounce_seconds = debounce_seconds
        self.refresh_delay_seconds = refresh_delay_seconds
        self.on_confirm = on_confirm
        self.on_close = on_close

        self.is_open = False
        self._generation = 0
        self._debounce_task: Optional[asyncio.Task] = None
        self._refresh_tasks: Set[asyncio.Task] = set()
        self._reset_state([])

    def _reset_state(self, initial_selection: Optional[Iterable[InitialItem]]) -> None:
        ids, records = coerce_initial_selection(initial_selection)
        self.query = ""
        self._debounced_query = ""
        self.library: List[Asset] = []
        self.page_info = PageInfo()
        self.cursor = CursorStack()
        self.selection = SelectionState(multiple=self.multiple, initial_ids=ids)
        self._known: Dict[str, Asset] = records
        self.loading = False
        self.uploading = False
        self.notice: Optional[str] = None
        self._in_flight = False
        self._pending_reset = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def selected_ids(self) -> List[str]:
        return self.selection.selected_ids

    @property
    def hero_id(self) -> Optional[str]:
        return self.selection.hero_id

    @property
    def page_number(self) -> int:
        return self.cursor.page_number

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def can_confirm(self) -> bool:
        return len(self.selection) > 0

    def _records_by_id(self) -> Dict[str, Asset]:
        records = dict(self._known)
        for asset in self.library:
            records[asset.id] = asset
        return records

    @property
    def selected_records(self) -> List[Asset]:
        records = self._records_by_id()
        return [records[i] for i in self.selection.selected_ids if i in records]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, initial_selection: Optional[Iterable[InitialItem]] = None) -> None:
        self._cancel_scheduled()
        self._generation += 1
        self._reset_state(initial_selection)
        self.is_open = True
        await self._load(reset=True)

    def close(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self._cancel_scheduled()
        self._generation += 1
        self._reset_state([])
        if self.on_close is not None:
            self.on_close()

    def _pending_tasks(self) -> List[asyncio.Task]:
        tasks = [self._debounce_task] if self._debounce_task is not None else []
        return tasks + list(self._refresh_tasks)

    def _cancel_scheduled(self) -> None:
        for task in self._pending_tasks():
            if not task.done():
                task.cancel()
        self._debounce_task = None
        self._refresh_tasks.clear()

    async def settle(self) -> None:
        """Wait for a pending debounce or post-upload refresh to run."""
        for task in self._pending_tasks():
            if not task.done():
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    async def _load(
        self,
        after: Optional[str] = None,
        *,
        reset: bool = False,
        previous_cursor: Optional[List[PageCursor]] = None,
    ) -> bool:
        if self._in_flight:
            if reset:
                # Runs once the outstanding request settles.
                self._pending_reset = True
            logger.debug("media picker: list refused, request in flight")
            return False

        generation = self._generation
        if previous_cursor is None:
            previous_cursor = self.cursor.entries
        self._in_flight = True
        self.loading = True
        if reset:
            after = None
            self.cursor.reset()

        try:
            page = await self.transport.list(self.page_size, after)
        except MediaServiceError as exc:
            if generation != self._generation:
                return False
            logger.warning("media picker: listing failed: %s", exc)
            self.notice = f"Could not load the media library: {exc}"
            self.cursor.restore(previous_cursor)
            self._pending_reset = False
            return False
        finally:
            if generation == self._generation:
                self._in_flight = False
                self.loading = False

        if generation != self._generation:
            logger.debug("media picker: dropping stale listing (generation %s)", generation)
            return False

        self.library = list(page.images)
        self.page_info = page.page_info
        self.notice = None

        if self._pending_reset and self.is_open:
            self._pending_reset = False
            await self._load(reset=True)
        return True

    async def next_page(self) -> bool:
        if not self.is_open or self._in_flight:
            return False
        if not self.page_info.has_next_page or not self.page_info.end_cursor:
            return False
        previous = self.cursor.entries
        after = self.page_info.end_cursor
        self.cursor.push(after)
        return await self._load(after, previous_cursor=previous)

    async def prev_page(self) -> bool:
        if not self.is_open or self._in_flight or not self.cursor.can_go_back:
            return False
        previous = self.cursor.entries
        top = self.cursor.pop()
        return await self._load(top.after if top else None, previous_cursor=previous)

    async def refresh(self) -> bool:
        if not self.is_open or self._in_flight:
            return False
        return await self._load(reset=True)

    async def set_page_size(self, page_size: int) -> bool:
        if page_size not in PICKER_PAGE_SIZE_OPTIONS:
            raise ValueError(f"page size must be one of {PICKER_PAGE_SIZE_OPTIONS}")
        if page_size == self.page_size:
            return False
        self.page_size = page_size
        if not self.is_open:
            return False
        return await self._load(reset=True)

    def set_query(self, query: str) -> None:
        """Record the search text; a reset fetch follows after the quiet period.

        The text is not sent to the media service yet, it only restarts
        browsing from page 1.
        """

        self.query = query or ""
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounced_reset(self._generation)
        )

    async def _debounced_reset(self, generation: int) -> None:
        await asyncio.sleep(self.debounce_seconds)
        if generation != self._generation or not self.is_open:
            return
        if self.query == self._debounced_query:
            return
        self._debounced_query = self.query
        await self._load(reset=True)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def upload_files(self, files: Sequence[LocalFile]) -> List[Asset]:
        files = list(files or [])
        if not files or not self.is_open:
            return []
        if self.uploading:
            logger.info("media picker: upload refused, another upload is in progress")
            return []

        generation = self._generation
        self.uploading = True
        try:
            records = await self.transport.upload(files)
        except MediaServiceError as exc:
            if generation == self._generation:
                logger.warning("media picker: upload failed: %s", exc)
                self.notice = f"Upload failed: {exc}"
            return []
        finally:
            if generation == self._generation:
                self.uploading = False

        if generation != self._generation:
            return []

        if records:
            new_ids = [r.id for r in records]
            self.library = list(records) + [a for a in self.library if a.id not in new_ids]
            for record in records:
                self._known[record.id] = record
            self.selection.prepend(new_ids)
        self.notice = None

        # The Files index lags behind fileCreate; re-list once it has caught up.
        task = asyncio.get_running_loop().create_task(self._delayed_refresh(generation))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)
        return list(records)

    async def _delayed_refresh(self, generation: int) -> None:
        await asyncio.sleep(self.refresh_delay_seconds)
        if generation != self._generation or not self.is_open:
            return
        await self._load(reset=True)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle(self, asset_id: str) -> None:
        self.selection.toggle(asset_id)

    def set_hero(self, asset_id: str) -> None:
        self.selection.set_hero(asset_id)

    def move_up(self, index: int) -> None:
        self.selection.move_up(index)

    def move_down(self, index: int) -> None:
        self.selection.move_down(index)

    def remove(self, asset_id: str) -> None:
        self.selection.remove(asset_id)

    def confirm(self) -> Optional[PickerResult]:
        """Emit the final selection and close; inert when nothing is selected."""

        if not self.can_confirm:
            return None
        result = PickerResult(
            hero_id=self.selection.effective_hero(),
            gallery_ids=self.selection.selected_ids,
            nodes=self.selected_records,
        )
        if self.on_confirm is not None:
            self.on_confirm(result)
        self.close()
        return result
