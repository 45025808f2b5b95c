import io
import json

import pytest
import requests
from PIL import Image

from gallery import NOTICE, load_manifest
from routing import DEFAULT_TITLE
from session import GallerySession, image_path


def test_start_renders_sorted_cards(records):
    session = GallerySession()
    page = session.start(lambda: records)
    assert [card.image_id for card in page.cards] == ["b", "c", "a"]
    assert page.lightbox is None


def test_manifest_failure_yields_empty_gallery():
    def broken():
        raise requests.ConnectionError("offline")

    session = GallerySession(initial_url="/image/a")
    page = session.start(broken)
    assert page.cards == []
    assert session.history.location == "/"


@pytest.mark.parametrize(
    "manifest",
    [
        [{"file": "a.jpg", "tags": 5}],
        [{"file": "a.jpg", "added": 1}, {"file": "b.jpg", "added": "2024-01-01"}],
    ],
)
def test_mistyped_manifest_yields_empty_gallery(tmp_path, manifest):
    path = tmp_path / "images.json"
    path.write_text(json.dumps(manifest), encoding="utf-8")
    page = GallerySession().start(lambda: load_manifest(path))
    assert page.cards == []


def test_start_routes_deep_link(records):
    session = GallerySession(initial_url="/image/a")
    page = session.start(lambda: records)
    assert page.lightbox.title == "Sunset"
    assert session.history.mutations == 0


def test_sort_preference_is_read_and_written(records):
    storage = {"sort": "oldest"}
    session = GallerySession(storage)
    page = session.start(lambda: records)
    assert [card.image_id for card in page.cards] == ["a", "c", "b"]
    session.dispatch("sort", "size")
    assert storage["sort"] == "size"
    assert [card.image_id for card in session.render().cards] == ["b", "c", "a"]


def test_search_and_tag_events_filter(records):
    session = GallerySession()
    session.start(lambda: records)
    assert [c.image_id for c in session.dispatch("search", " Dawn ").cards] == ["b"]
    assert [c.image_id for c in session.dispatch("tag", "cat").cards] == ["a"]
    assert session.state.query == "cat"


def test_layout_and_theme_events(records):
    storage = {}
    session = GallerySession(storage)
    session.start(lambda: records)
    page = session.dispatch("layout")
    assert page.layout == "grid"
    assert page.layout_toggle_label == "Masonry"
    assert session.dispatch("theme") == "dark"
    assert storage == {"layout": "grid", "theme": "dark"}


def test_open_back_forward_cycle(records):
    session = GallerySession()
    session.start(lambda: records)
    assert session.dispatch("open", "c") is True
    assert session.render().lightbox.image_id == "c"
    session.back()
    assert session.render().lightbox is None
    assert session.controller.title == DEFAULT_TITLE
    session.forward()
    assert session.render().lightbox.image_id == "c"
    assert session.history.pushes == 1
    assert session.back() is not None
    assert session.back() is None


def test_close_event_pushes_base(records):
    session = GallerySession()
    session.start(lambda: records)
    session.dispatch("open", "a")
    session.dispatch("close")
    assert [e.url for e in session.history.entries] == ["/", "/image/a", "/"]


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError):
        GallerySession().dispatch("hover")


def test_copy_notice_fills_clipboard_and_toast():
    session = GallerySession()
    assert session.dispatch("copy_notice") == NOTICE
    assert session.clipboard == [NOTICE]
    assert session.toast == "License notice copied"


def test_stamp_open_image(site):
    session = GallerySession(initial_url="/image/red-square", site_root=site)
    session.start(lambda: load_manifest(site / "data" / "images.json"))
    name, data = session.dispatch("stamp")
    assert name == "Red-lsa.jpg"
    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "JPEG"
        assert img.size == (40, 30 + 54)


def test_stamp_requires_open_image(site):
    session = GallerySession(site_root=site)
    session.start(lambda: load_manifest(site / "data" / "images.json"))
    with pytest.raises(ValueError):
        session.dispatch("stamp")


def test_image_path_stays_inside_site(site, make_record):
    assert image_path(site, make_record("blue.png")) == site / "img" / "blue.png"
    escaping = make_record("x.jpg", src="../../etc/passwd")
    with pytest.raises(ValueError):
        image_path(site, escaping)
