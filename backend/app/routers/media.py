from __future__ import annotations

from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from app.config import settings
from app.models.media import AssetList, AssetPage, MediaErrorResponse, ResolveRequest
from app.services.media_backend import LocalFile
from app.services.media_errors import (
    AdminApiConfigError,
    AdminApiError,
    MediaServiceError,
    ProtocolInvariantError,
    TransferError,
    TransientNetworkError,
    ValidationError,
)
from app.services.media_service import MediaService, media_service
from app.utils.logger import admin_api_logger, logger


router = APIRouter(prefix="/api/media", tags=["media"])


def get_media_service() -> MediaService:
    return media_service


def _raise_http(exc: MediaServiceError, action: str) -> NoReturn:
    """Translate a media failure into an HTTPException the admin UI can show."""

    if isinstance(exc, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
        user_errors = [
            {"field": e.get("field"), "message": str(e.get("message") or e)}
            for e in exc.user_errors
            if isinstance(e, dict)
        ]
        body = MediaErrorResponse(message=str(exc), phase=exc.phase, user_errors=user_errors)
    elif isinstance(exc, TransferError):
        code = status.HTTP_502_BAD_GATEWAY
        body = MediaErrorResponse(
            message=str(exc), phase="transfer", status_code=exc.status_code, body=exc.body[:2000]
        )
    elif isinstance(exc, ProtocolInvariantError):
        code = status.HTTP_502_BAD_GATEWAY
        body = MediaErrorResponse(message=str(exc), phase="protocol")
    elif isinstance(exc, TransientNetworkError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
        body = MediaErrorResponse(message=str(exc), status_code=exc.status_code)
    elif isinstance(exc, AdminApiConfigError):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        body = MediaErrorResponse(message=str(exc))
    elif isinstance(exc, AdminApiError):
        code = status.HTTP_502_BAD_GATEWAY
        body = MediaErrorResponse(message=str(exc), status_code=exc.status_code)
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
        body = MediaErrorResponse(message=str(exc))

    logger.error("Media %s failed (%s): %s", action, type(exc).__name__, exc)
    raise HTTPException(status_code=code, detail=body.model_dump())


async def _read_uploads(files: List[UploadFile]) -> List[LocalFile]:
    local_files: List[LocalFile] = []
    for upload in files:
        content = await upload.read()
        local_files.append(
            LocalFile(
                name=upload.filename or "",
                mime_type=upload.content_type or "",
                content=content,
            )
        )
    return local_files


@router.get("/list", response_model=AssetPage, response_model_by_alias=True)
async def list_media(
    first: Optional[int] = Query(None, description="Page size; clamped to 1..250"),
    after: Optional[str] = Query(None, description="endCursor of the previous page"),
    service: MediaService = Depends(get_media_service),
) -> AssetPage:
    try:
        return await service.list_assets(
            first if first is not None else settings.MEDIA_LIBRARY_PAGE_SIZE, after
        )
    except MediaServiceError as exc:
        _raise_http(exc, "list")


@router.post("/resolve", response_model=AssetList)
async def resolve_media(
    payload: ResolveRequest,
    service: MediaService = Depends(get_media_service),
) -> AssetList:
    try:
        images = await service.resolve_by_ids(payload.ids)
    except MediaServiceError as exc:
        _raise_http(exc, "resolve")
    return AssetList(images=images)


@router.post("/upload", response_model=AssetList)
async def upload_media(
    files: List[UploadFile] = File(..., description="Local image files"),
    service: MediaService = Depends(get_media_service),
) -> AssetList:
    local_files = await _read_uploads(files)
    try:
        images = await service.upload(local_files)
    except MediaServiceError as exc:
        _raise_http(exc, "upload")
    return AssetList(images=images)


@router.get("/logs")
async def media_logs(limit: int = Query(100, ge=1, le=1000)):
    return {"logs": admin_api_logger.get_logs(limit)}


@router.post("")
async def media_action(
    intent: Optional[str] = Form(None),
    first: Optional[str] = Form(None),
    after: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    service: MediaService = Depends(get_media_service),
):
    """Form-post entry point mirroring the embedded admin page's intents.

    ``media.list`` returns ``{intent, images, pageInfo}``;
    ``media.uploadLocal`` returns ``{intent, images}``. Anything else is
    acknowledged with ``{"ok": true}``.
    """

    if intent == "media.list":
        try:
            page_size = int(first) if first else settings.MEDIA_LIBRARY_PAGE_SIZE
        except ValueError:
            page_size = settings.MEDIA_LIBRARY_PAGE_SIZE
        try:
            page = await service.list_assets(page_size, after or None)
        except MediaServiceError as exc:
            _raise_http(exc, "list")
        return {"intent": intent, **page.model_dump(by_alias=True)}

    if intent == "media.uploadLocal":
        local_files = await _read_uploads(files or [])
        try:
            images = await service.upload(local_files)
        except MediaServiceError as exc:
            _raise_http(exc, "upload")
        return {"intent": intent, "images": [i.model_dump() for i in images]}

    return {"ok": True}
