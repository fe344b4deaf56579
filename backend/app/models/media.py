from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional


class Asset(BaseModel):
    """Display-ready record for one remote media object."""

    model_config = ConfigDict(frozen=True)

    id: str
    preview: str
    filename: str
    label: str


class PageInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_next_page: bool = Field(False, alias="hasNextPage")
    end_cursor: Optional[str] = Field(None, alias="endCursor")


class AssetPage(BaseModel):
    images: List[Asset] = []
    page_info: PageInfo = Field(default_factory=PageInfo, alias="pageInfo")

    model_config = ConfigDict(populate_by_name=True)


class AssetList(BaseModel):
    images: List[Asset] = []


class ResolveRequest(BaseModel):
    ids: List[Optional[str]] = Field(default_factory=list, description="Opaque File ids to resolve")


class MediaUserError(BaseModel):
    field: Optional[Any] = None
    message: str


class MediaErrorResponse(BaseModel):
    message: str
    phase: Optional[str] = None
    user_errors: List[MediaUserError] = []
    status_code: Optional[int] = None
    body: Optional[str] = None
