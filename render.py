"""Project gallery state onto cards and lightbox content.

Everything here is a pure function of its arguments; nothing touches
session state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from urllib.parse import urljoin

from gallery import (
    LICENSE_URL,
    ImageRecord,
    find_record_by_id,
    image_id,
    matches_query,
    normalize_query,
    sort_records,
)

BYTE_UNITS = ("B", "KB", "MB", "GB")


@dataclass(frozen=True)
class Card:
    image_id: str
    thumb_src: str
    alt: str
    title: str
    dims: str
    size: str
    tags: List[str]
    creator: Optional[str] = None


@dataclass(frozen=True)
class LightboxContent:
    image_id: str
    title: str
    description: str
    creator_line: str
    src: str
    alt: str
    raw_href: str
    download_name: str
    license_href: str
    tags: List[str]
    json_ld: Dict[str, object]


@dataclass(frozen=True)
class RenderedPage:
    layout: str
    layout_toggle_label: str
    cards: List[Card] = field(default_factory=list)
    lightbox: Optional[LightboxContent] = None


def human_bytes(value: Optional[int]) -> str:
    if value is None:
        return ""
    unit = 0
    amount = float(value)
    while amount >= 1024 and unit < len(BYTE_UNITS) - 1:
        amount /= 1024
        unit += 1
    digits = 1 if amount < 10 and unit > 0 else 0
    return f"{amount:.{digits}f} {BYTE_UNITS[unit]}"


def dimensions_label(record: ImageRecord) -> str:
    if record.width is None or record.height is None:
        return ""
    return f"{record.width}×{record.height}"


def display_title(record: ImageRecord) -> str:
    return record.title or record.file


def tag_labels(record: ImageRecord) -> List[str]:
    return [f"#{tag}" for tag in record.tags]


def render_card(record: ImageRecord, base: str) -> Card:
    return Card(
        image_id=image_id(record),
        thumb_src=base + record.src,
        alt=record.alt or record.title or "image",
        title=display_title(record),
        dims=dimensions_label(record),
        size=human_bytes(record.bytes),
        tags=tag_labels(record),
        creator=record.creator or None,
    )


def image_json_ld(record: ImageRecord, base: str, origin: str) -> Dict[str, object]:
    """schema.org ImageObject describing ``record``."""
    content_url = urljoin(origin + base, record.src)
    payload: Dict[str, object] = {
        "@context": "https://schema.org",
        "@type": "ImageObject",
        "name": display_title(record),
        "contentUrl": content_url,
        "thumbnail": content_url,
        "description": record.description,
    }
    if record.creator:
        payload["creator"] = {"@type": "Person", "name": record.creator}
    payload.update(
        {
            "width": record.width,
            "height": record.height,
            "encodingFormat": record.mime,
            "license": LICENSE_URL,
        }
    )
    return payload


def render_lightbox(record: ImageRecord, base: str, origin: str) -> LightboxContent:
    return LightboxContent(
        image_id=image_id(record),
        title=display_title(record),
        description=record.description,
        creator_line=f"Creator: {record.creator}" if record.creator else "",
        src=base + record.src,
        alt=record.alt or record.title or "image",
        raw_href=base + record.src,
        download_name=record.file,
        license_href=LICENSE_URL,
        tags=tag_labels(record),
        json_ld=image_json_ld(record, base, origin),
    )


def render_page(
    records: Sequence[ImageRecord],
    query: str,
    sort_mode: str,
    open_id: Optional[str],
    layout: str = "masonry",
    base: str = "/",
    origin: str = "",
) -> RenderedPage:
    query = normalize_query(query)
    cards = [
        render_card(record, base)
        for record in sort_records(records, sort_mode)
        if matches_query(record, query)
    ]
    lightbox = None
    if open_id is not None:
        record = find_record_by_id(records, open_id)
        if record is not None:
            lightbox = render_lightbox(record, base, origin)
    return RenderedPage(
        layout=layout,
        layout_toggle_label="Grid" if layout == "masonry" else "Masonry",
        cards=cards,
        lightbox=lightbox,
    )
