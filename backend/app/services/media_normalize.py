"""Collapse the Admin API's File union into the single ``Asset`` record.

``files`` / ``nodes`` / ``fileCreate`` return a union of MediaImage,
GenericFile and Video nodes with different URL fields. Each variant is parsed
into its own dataclass, and each dataclass knows its preview / source URLs;
``to_asset`` then applies one preference order to all of them. Nothing outside
the media service ever sees these variant classes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import unquote, urlparse

from app.models.media import Asset

FALLBACK_FILENAME = "image"


def basename_from_url(url: Optional[str]) -> str:
    """Return the URL-decoded last path segment, or "" for anything unparsable."""

    if not url:
        return ""
    try:
        parsed = urlparse(url)
    except ValueError:
        return ""
    if not parsed.scheme or not parsed.netloc:
        return ""
    segments = [s for s in parsed.path.split("/") if s]
    if not segments:
        return ""
    return unquote(segments[-1])


def _url_at(raw: Dict[str, Any], *path: str) -> str:
    node: Any = raw
    for key in path:
        if not isinstance(node, dict):
            return ""
        node = node.get(key)
    return node if isinstance(node, str) else ""


@dataclass
class MediaImageNode:
    id: str
    alt: str
    preview_url: str
    image_url: str
    original_source_url: str

    @property
    def raw_url(self) -> str:
        return ""


@dataclass
class GenericFileNode:
    id: str
    alt: str
    preview_url: str
    url: str

    @property
    def image_url(self) -> str:
        return ""

    @property
    def original_source_url(self) -> str:
        return ""

    @property
    def raw_url(self) -> str:
        return self.url


@dataclass
class VideoNode:
    id: str
    alt: str
    preview_url: str
    original_source_url: str

    @property
    def image_url(self) -> str:
        return ""

    @property
    def raw_url(self) -> str:
        return ""


FileNode = Union[MediaImageNode, GenericFileNode, VideoNode]


def _parse_media_image(raw: Dict[str, Any]) -> MediaImageNode:
    return MediaImageNode(
        id=str(raw.get("id") or ""),
        alt=raw.get("alt") or _url_at(raw, "image", "altText"),
        preview_url=_url_at(raw, "preview", "image", "url"),
        image_url=_url_at(raw, "image", "url"),
        original_source_url=_url_at(raw, "originalSource", "url"),
    )


def _parse_generic_file(raw: Dict[str, Any]) -> GenericFileNode:
    return GenericFileNode(
        id=str(raw.get("id") or ""),
        alt=raw.get("alt") or "",
        preview_url=_url_at(raw, "preview", "image", "url"),
        url=_url_at(raw, "url"),
    )


def _parse_video(raw: Dict[str, Any]) -> VideoNode:
    return VideoNode(
        id=str(raw.get("id") or ""),
        alt=raw.get("alt") or "",
        preview_url=_url_at(raw, "preview", "image", "url"),
        original_source_url=_url_at(raw, "originalSource", "url"),
    )


_PARSERS = {
    "MediaImage": _parse_media_image,
    "GenericFile": _parse_generic_file,
    "Video": _parse_video,
}


def parse_node(raw: Dict[str, Any]) -> FileNode:
    """Parse one raw File node by ``__typename``, falling back to its shape."""

    parser = _PARSERS.get(raw.get("__typename") or "")
    if parser is None:
        # Callers sometimes hand us hand-built dicts such as {"id", "image": {"url"}}.
        if "image" in raw:
            parser = _parse_media_image
        elif "url" in raw:
            parser = _parse_generic_file
        else:
            parser = _parse_video
    return parser(raw)


def to_asset(node: FileNode) -> Optional[Asset]:
    if not node.id:
        return None

    preview = node.preview_url or node.image_url or node.original_source_url or node.raw_url
    if not preview:
        return None

    filename = (
        basename_from_url(node.original_source_url)
        or basename_from_url(node.raw_url)
        or basename_from_url(preview)
        or node.alt
        or FALLBACK_FILENAME
    )
    return Asset(id=node.id, preview=preview, filename=filename, label=filename)


def normalize_nodes(raw_nodes: Iterable[Optional[Dict[str, Any]]]) -> List[Asset]:
    """Normalize raw nodes in order, dropping nulls and unrenderable entries."""

    assets: List[Asset] = []
    for raw in raw_nodes or []:
        if not isinstance(raw, dict):
            continue
        asset = to_asset(parse_node(raw))
        if asset is not None:
            assets.append(asset)
    return assets
