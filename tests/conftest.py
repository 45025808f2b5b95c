import json

import pytest
from PIL import Image

from gallery import ImageRecord


def _record(file, **fields):
    return ImageRecord.from_dict({"file": file, "src": f"img/{file}", **fields})


@pytest.fixture
def make_record():
    return _record


@pytest.fixture
def records():
    return [
        _record("a.jpg", title="Sunset", tags=["cat", "orange"], added=100, bytes=10),
        _record("b.png", title="Harbor", description="Boats at dawn", added=300, bytes=30),
        _record("c.webp", title="Alley", added=200, bytes=20),
    ]


@pytest.fixture
def site(tmp_path):
    """A minimal site directory with two images and a manifest."""
    root = tmp_path.resolve()
    (root / "img").mkdir()
    (root / "data").mkdir()
    Image.new("RGB", (40, 30), (200, 50, 50)).save(root / "img" / "red-square.jpg", "JPEG")
    Image.new("RGB", (10, 20), (50, 50, 200)).save(root / "img" / "blue.png", "PNG")
    manifest = [
        {"file": "red-square.jpg", "src": "img/red-square.jpg", "title": "Red", "tags": ["warm"],
         "added": 2, "bytes": 100, "width": 40, "height": 30, "mime": "image/jpeg"},
        {"file": "blue.png", "src": "img/blue.png", "title": "Blue", "tags": ["cool"],
         "added": 1, "bytes": 50, "width": 10, "height": 20, "mime": "image/png"},
    ]
    (root / "data" / "images.json").write_text(json.dumps(manifest), encoding="utf-8")
    (root / "index.html").write_text("<!doctype html><title>LSA Gallery</title>", encoding="utf-8")
    return root
