"""Gallery session: state container plus the event-to-handler table."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, List, MutableMapping, Optional, Sequence
from urllib.parse import unquote

import requests

from gallery import NOTICE, GalleryState, ImageRecord, Preferences
from render import RenderedPage, render_page
from routing import LightboxController, NavigationHistory, Route
from stamp import stamp_filename, stamp_license

ManifestLoader = Callable[[], Sequence[ImageRecord]]
Handler = Callable[..., object]

logger = logging.getLogger(__name__)


class GallerySession:
    def __init__(
        self,
        storage: Optional[MutableMapping[str, str]] = None,
        initial_url: str = "/",
        base: str = "/",
        origin: str = "",
        site_root: Optional[Path] = None,
    ) -> None:
        self.preferences = Preferences(storage)
        self.state = GalleryState(sort_mode=self.preferences.sort)
        self.history = NavigationHistory(initial_url)
        self.controller = LightboxController(self.state, self.history, base)
        self.origin = origin
        self.site_root = site_root
        self.toast: Optional[str] = None
        self.clipboard: List[str] = []
        self.handlers: Dict[str, Handler] = {
            "search": self.on_search,
            "sort": self.on_sort,
            "layout": self.on_layout,
            "theme": self.on_theme,
            "tag": self.on_tag,
            "open": self.on_open,
            "close": self.on_close,
            "popstate": self.on_popstate,
            "copy_notice": self.on_copy_notice,
            "stamp": self.on_stamp,
        }

    @property
    def base(self) -> str:
        return self.controller.base

    def start(self, loader: ManifestLoader) -> RenderedPage:
        try:
            records = list(loader())
        except (requests.RequestException, OSError, ValueError) as exc:
            logger.error("Failed to load manifest: %s", exc)
            records = []
        self.state.load(records)
        self.controller.handle_initial_route()
        return self.render()

    def render(self) -> RenderedPage:
        return render_page(
            self.state.all_records,
            self.state.query,
            self.state.sort_mode,
            self.state.open_image_id,
            layout=self.preferences.layout,
            base=self.base,
            origin=self.origin,
        )

    def dispatch(self, event: str, *args, **kwargs) -> object:
        try:
            handler = self.handlers[event]
        except KeyError:
            raise ValueError(f"Unknown event: {event}") from None
        return handler(*args, **kwargs)

    def on_search(self, text: str) -> RenderedPage:
        self.state.set_query(text)
        return self.render()

    def on_sort(self, mode: str) -> RenderedPage:
        self.preferences.set_sort(mode)
        self.state.set_sort(mode)
        return self.render()

    def on_layout(self) -> RenderedPage:
        self.preferences.toggle_layout()
        return self.render()

    def on_theme(self) -> str:
        return self.preferences.toggle_theme()

    def on_tag(self, tag: str) -> RenderedPage:
        return self.on_search(tag)

    def on_open(self, identifier: str) -> bool:
        return self.controller.open_by_id(identifier)

    def on_close(self) -> None:
        self.controller.close()

    def on_popstate(self) -> Route:
        return self.controller.handle_popstate()

    def back(self) -> Optional[Route]:
        if self.history.back() is None:
            return None
        return self.dispatch("popstate")

    def forward(self) -> Optional[Route]:
        if self.history.forward() is None:
            return None
        return self.dispatch("popstate")

    def on_copy_notice(self) -> str:
        self.clipboard.append(NOTICE)
        self.toast = "License notice copied"
        return NOTICE

    def on_stamp(self) -> tuple[str, bytes]:
        """Stamp the open image; returns the download name and JPEG bytes."""
        if self.site_root is None:
            raise ValueError("Stamping needs a site root")
        record = self.controller.record
        if record is None:
            raise ValueError("No image is open")
        return stamp_filename(record.title or record.file), stamp_license(image_path(self.site_root, record))


def image_path(site_root: Path, record: ImageRecord) -> Path:
    """Local file behind ``record.src``, confined to ``site_root``."""
    root = site_root.resolve()
    target = (root / unquote(record.src)).resolve()
    if target != root and root not in target.parents:
        raise ValueError("Image path escapes the site root")
    return target
