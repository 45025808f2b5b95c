"""Router/lightbox controller: keeps the open image in step with history and URL."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import parse_qs, urlparse

from gallery import GalleryState, ImageRecord, image_id

DEFAULT_TITLE = "LSA Gallery — liberty • share • remix"
TITLE_SUFFIX = " - LSA Gallery"
LEGACY_QUERY_KEYS = ("i", "image")

logger = logging.getLogger(__name__)


@dataclass
class NavigationEntry:
    url: str
    state: Optional[Dict[str, str]] = None
    title: str = ""


class NavigationHistory:
    """In-memory session history with push/replace and back/forward traversal."""

    def __init__(self, initial_url: str = "/", title: str = DEFAULT_TITLE) -> None:
        self.entries: List[NavigationEntry] = [NavigationEntry(initial_url, None, title)]
        self.index = 0
        self.pushes = 0
        self.replaces = 0

    @property
    def current(self) -> NavigationEntry:
        return self.entries[self.index]

    @property
    def location(self) -> str:
        return self.current.url

    def push(self, state: Optional[Dict[str, str]], title: str, url: str) -> None:
        del self.entries[self.index + 1 :]
        self.entries.append(NavigationEntry(url, state, title))
        self.index += 1
        self.pushes += 1
        logger.debug("history push %s", url)

    def replace(self, state: Optional[Dict[str, str]], title: str, url: str) -> None:
        self.entries[self.index] = NavigationEntry(url, state, title)
        self.replaces += 1
        logger.debug("history replace %s", url)

    @property
    def mutations(self) -> int:
        return self.pushes + self.replaces

    def go(self, delta: int) -> Optional[NavigationEntry]:
        target = self.index + delta
        if target < 0 or target >= len(self.entries):
            return None
        self.index = target
        return self.current

    def back(self) -> Optional[NavigationEntry]:
        return self.go(-1)

    def forward(self) -> Optional[NavigationEntry]:
        return self.go(1)


@dataclass(frozen=True)
class Route:
    """Desired state derived from a URL.

    ``kind`` is ``"closed"``, ``"open"`` or ``"unresolved"``; ``legacy`` marks
    ids that came from the ``?i=``/``?image=`` query form.
    """

    kind: str
    image_id: Optional[str] = None
    record: Optional[ImageRecord] = None
    legacy: bool = False


CLOSED = Route("closed")


def get_base_path(script_src: Optional[str], pathname: str) -> str:
    """Base path of the app, taken from the app script URL or the first path segment."""
    if script_src:
        path = urlparse(script_src).path
        if path.endswith("assets/app.js"):
            base = path[: -len("assets/app.js")]
            if not base.endswith("/"):
                base += "/"
            return base
    parts = [part for part in pathname.split("/") if part]
    if parts:
        return f"/{parts[0]}/"
    return "/"


@dataclass
class LightboxController:
    state: GalleryState
    history: NavigationHistory
    base: str = "/"
    title: str = DEFAULT_TITLE
    record: Optional[ImageRecord] = field(default=None, init=False)

    def __post_init__(self) -> None:
        if not self.base.endswith("/"):
            self.base += "/"
        self._image_path = re.compile("^" + re.escape(self.base) + "image/(.+)$")

    @property
    def is_open(self) -> bool:
        return self.record is not None

    def image_url(self, identifier: str) -> str:
        return f"{self.base}image/{identifier}"

    def resolve_route(self, url: str) -> Route:
        parsed = urlparse(url)
        match = self._image_path.match(parsed.path)
        if match:
            identifier = match.group(1)
            record = self.state.find(identifier)
            if record is None:
                return Route("unresolved", identifier)
            return Route("open", identifier, record)

        params = parse_qs(parsed.query)
        for key in LEGACY_QUERY_KEYS:
            values = [value for value in params.get(key, []) if value]
            if values:
                identifier = values[0]
                record = self.state.find(identifier)
                if record is None:
                    return Route("unresolved", identifier, legacy=True)
                return Route("open", identifier, record, legacy=True)
        return CLOSED

    def _show(self, record: ImageRecord) -> str:
        identifier = image_id(record)
        self.record = record
        self.state.open_image_id = identifier
        self.title = f"{record.title or record.file}{TITLE_SUFFIX}"
        return identifier

    def _hide(self) -> None:
        self.record = None
        self.state.open_image_id = None
        self.title = DEFAULT_TITLE

    def _normalize_to_base(self, identifier: Optional[str]) -> None:
        logger.info("Unknown image id %r, returning to %s", identifier, self.base)
        self.history.replace(None, DEFAULT_TITLE, self.base)

    def open_image(self, record: ImageRecord, push: bool = True) -> None:
        identifier = self._show(record)
        if push:
            self.history.push({"imageId": identifier}, self.title, self.image_url(identifier))

    def open_by_id(self, identifier: str) -> bool:
        record = self.state.find(identifier)
        if record is None:
            return False
        self.open_image(record)
        return True

    def close(self) -> None:
        self._hide()
        self.history.push(None, DEFAULT_TITLE, self.base)

    def handle_initial_route(self, url: Optional[str] = None) -> Route:
        route = self.resolve_route(url if url is not None else self.history.location)
        if route.kind == "unresolved":
            self._normalize_to_base(route.image_id)
        elif route.kind == "open":
            # Legacy query links are migrated to a pushed canonical entry;
            # canonical links already own the current entry.
            self.open_image(route.record, push=route.legacy)
        return route

    def handle_popstate(self, url: Optional[str] = None) -> Route:
        route = self.resolve_route(url if url is not None else self.history.location)
        if route.kind == "open" and not route.legacy:
            if not self.is_open:
                self.open_image(route.record, push=False)
        elif route.kind == "unresolved" and not route.legacy:
            self._normalize_to_base(route.image_id)
        elif self.is_open:
            self._hide()
        return route
