"""Gallery model: image records, identifiers, sorting, filtering and preferences."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, MutableMapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote, unquote

import requests
from pyuca import Collator

LICENSE_URL = "https://github.com/ShortTimeNoSee/liberty-sharealike/blob/v1.0/LICENSE"
NOTICE = (
    "Licensed under Liberty-ShareAlike 1.0 (LSA-1.0). Include this license or a stable "
    f"link if you distribute adaptations. No attribution required. {LICENSE_URL}"
)
MANIFEST_PATH = "data/images.json"
MANIFEST_TIMEOUT_SECONDS = 10

SORT_MODES = ("newest", "oldest", "title", "size")
DEFAULT_SORT = "newest"
LAYOUTS = ("masonry", "grid")
DEFAULT_LAYOUT = "masonry"

# encodeURIComponent leaves these unescaped on top of quote()'s own safe set.
_URI_COMPONENT_SAFE = "!~*'()"
_EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")
NUMERIC_FIELDS = ("width", "height", "bytes", "added")

_COLLATOR = Collator()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageRecord:
    file: str
    src: str = ""
    title: str = ""
    description: str = ""
    alt: str = ""
    creator: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    bytes: Optional[int] = None
    mime: str = ""
    tags: Tuple[str, ...] = ()
    added: Optional[int] = None
    sha256: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "ImageRecord":
        """Build a record from a manifest entry, defaulting missing fields."""
        if not isinstance(data, dict) or not data.get("file"):
            raise ValueError("Manifest entry requires a 'file' field")
        tags = data.get("tags") or ()
        if not isinstance(tags, (list, tuple)):
            raise ValueError(f"Manifest entry {data['file']!r} has non-list tags")
        for name in NUMERIC_FIELDS:
            value = data.get(name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise ValueError(f"Manifest entry {data['file']!r} has non-numeric {name}")
        return cls(
            file=str(data["file"]),
            src=str(data.get("src") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            alt=str(data.get("alt") or ""),
            creator=str(data.get("creator") or ""),
            width=data.get("width"),
            height=data.get("height"),
            bytes=data.get("bytes"),
            mime=str(data.get("mime") or ""),
            tags=tuple(str(tag) for tag in tags),
            added=data.get("added"),
            sha256=str(data.get("sha256") or ""),
        )

    def to_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "file": self.file,
            "src": self.src,
            "title": self.title,
            "description": self.description,
            "alt": self.alt,
            "width": self.width,
            "height": self.height,
            "bytes": self.bytes,
            "mime": self.mime,
            "tags": list(self.tags),
            "added": self.added,
            "sha256": self.sha256,
        }
        if self.creator:
            payload["creator"] = self.creator
        return payload


def strip_extension(filename: str) -> str:
    return _EXTENSION_PATTERN.sub("", filename)


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def image_id(record: ImageRecord) -> str:
    """Public, URL-safe identifier: the filename without extension, percent-encoded."""
    return encode_uri_component(strip_extension(record.file))


def find_record_by_id(records: Sequence[ImageRecord], identifier: str) -> Optional[ImageRecord]:
    decoded = unquote(identifier)
    for record in records:
        if strip_extension(record.file) == decoded:
            return record
    return None


def _title_key(record: ImageRecord) -> Tuple[int, ...]:
    return _COLLATOR.sort_key(record.title or "")


def sort_records(records: Sequence[ImageRecord], mode: str) -> List[ImageRecord]:
    """Return a new list ordered per ``mode``; ties keep manifest order."""
    if mode == "oldest":
        return sorted(records, key=lambda r: r.added or 0)
    if mode == "title":
        return sorted(records, key=_title_key)
    if mode == "size":
        return sorted(records, key=lambda r: r.bytes or 0, reverse=True)
    # sorted() with reverse=True keeps equal keys in their original order.
    return sorted(records, key=lambda r: r.added or 0, reverse=True)


def normalize_query(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def matches_query(record: ImageRecord, query: str) -> bool:
    if not query:
        return True
    haystack = " ".join([record.title, record.description, *record.tags]).lower()
    return query.lower() in haystack


@dataclass
class GalleryState:
    all_records: List[ImageRecord] = field(default_factory=list)
    sort_mode: str = DEFAULT_SORT
    query: str = ""
    open_image_id: Optional[str] = None
    sorted_records: List[ImageRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.apply_sort()

    def load(self, records: Sequence[ImageRecord]) -> None:
        """Replace the whole record set; never merged."""
        self.all_records = list(records)
        self.apply_sort()

    def set_sort(self, mode: str) -> None:
        self.sort_mode = mode
        self.apply_sort()

    def set_query(self, text: Optional[str]) -> None:
        self.query = normalize_query(text)

    def apply_sort(self) -> None:
        self.sorted_records = sort_records(self.all_records, self.sort_mode)

    @property
    def visible_records(self) -> List[ImageRecord]:
        return [record for record in self.sorted_records if matches_query(record, self.query)]

    def find(self, identifier: str) -> Optional[ImageRecord]:
        return find_record_by_id(self.all_records, identifier)


class Preferences:
    """Layout, sort and theme persisted in a key-value store."""

    def __init__(self, storage: Optional[MutableMapping[str, str]] = None) -> None:
        self.storage = storage if storage is not None else {}
        self.layout = self.storage.get("layout") or DEFAULT_LAYOUT
        self.sort = self.storage.get("sort") or DEFAULT_SORT
        self.theme = self.storage.get("theme") or "light"

    def set_layout(self, layout: str) -> None:
        self.layout = layout
        self.storage["layout"] = layout

    def toggle_layout(self) -> str:
        self.set_layout("grid" if self.layout == "masonry" else "masonry")
        return self.layout

    def set_sort(self, mode: str) -> None:
        self.sort = mode
        self.storage["sort"] = mode

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        self.storage["theme"] = self.theme
        return self.theme


def parse_manifest(payload: object) -> List[ImageRecord]:
    if not isinstance(payload, list):
        raise ValueError("Manifest must be a JSON array")
    return [ImageRecord.from_dict(entry) for entry in payload]


def load_manifest(source: Union[str, Path]) -> List[ImageRecord]:
    """Read the manifest from a local path or an http(s) URL."""
    text = str(source)
    if text.startswith(("http://", "https://")):
        response = requests.get(
            text, headers={"Cache-Control": "no-store"}, timeout=MANIFEST_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        payload = response.json()
    else:
        payload = json.loads(Path(source).read_text(encoding="utf-8"))
    records = parse_manifest(payload)
    logger.debug("Loaded %d records from %s", len(records), text)
    return records
