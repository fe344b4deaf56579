"""Controller for the stand-alone media library page (browse + upload, no selection)."""
from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Set

from app.config import settings
from app.models.media import Asset
from app.picker.transport import MediaTransport
from app.services.media_backend import LocalFile
from app.services.media_errors import MediaServiceError
from app.utils.logger import logger


class MediaLibraryController:

    def __init__(
        self,
        transport: MediaTransport,
        *,
        page_size: Optional[int] = None,
        refresh_delay_seconds: Optional[float] = None,
    ):
        self.transport = transport
        self.page_size = page_size or settings.MEDIA_LIBRARY_PAGE_SIZE
        if refresh_delay_seconds is None:
            refresh_delay_seconds = settings.MEDIA_REFRESH_DELAY_SECONDS
        self.refresh_delay_seconds = refresh_delay_seconds

        self.library: List[Asset] = []
        self.loading = False
        self.uploading = False
        self.notice: Optional[str] = None
        self._in_flight = False
        self._refresh_tasks: Set[asyncio.Task] = set()

    async def refresh(self) -> bool:
        if self._in_flight:
            return False
        self._in_flight = True
        self.loading = True
        try:
            page = await self.transport.list(self.page_size, None)
        except MediaServiceError as exc:
            logger.warning("media library: listing failed: %s", exc)
            self.notice = f"Could not load the media library: {exc}"
            return False
        finally:
            self._in_flight = False
            self.loading = False
        self.library = list(page.images)
        self.notice = None
        return True

    async def upload(self, files: Sequence[LocalFile]) -> List[Asset]:
        files = list(files or [])
        if not files or self.uploading:
            return []
        self.uploading = True
        try:
            records = await self.transport.upload(files)
        except MediaServiceError as exc:
            logger.warning("media library: upload failed: %s", exc)
            self.notice = f"Upload failed: {exc}"
            return []
        finally:
            self.uploading = False

        if records:
            new_ids = {r.id for r in records}
            self.library = list(records) + [a for a in self.library if a.id not in new_ids]
            task = asyncio.get_running_loop().create_task(self._delayed_refresh())
            self._refresh_tasks.add(task)
            task.add_done_callback(self._refresh_tasks.discard)
        self.notice = None
        return list(records)

    async def _delayed_refresh(self) -> None:
        await asyncio.sleep(self.refresh_delay_seconds)
        await self.refresh()

    async def settle(self) -> None:
        for task in list(self._refresh_tasks):
            if not task.done():
                await task

    def close(self) -> None:
        for task in list(self._refresh_tasks):
            if not task.done():
                task.cancel()
        self._refresh_tasks.clear()
