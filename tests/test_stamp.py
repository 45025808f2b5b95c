import io

from PIL import Image

from stamp import footer_geometry, stamp_filename, stamp_image, stamp_license


def test_footer_geometry_minimums_and_scaling():
    assert footer_geometry(100, 100) == (24, 54, 19)
    assert footer_geometry(4000, 3000) == (80, 150, 52)


def test_stamp_extends_canvas_with_dark_footer():
    source = Image.new("RGB", (200, 100), (255, 255, 255))
    stamped = stamp_image(source)
    assert stamped.mode == "RGB"
    assert stamped.size == (200, 154)
    assert stamped.getpixel((5, 10)) == (255, 255, 255)
    assert stamped.getpixel((199, 153)) == (0, 0, 0)


def test_stamp_license_writes_jpeg(tmp_path):
    path = tmp_path / "a.png"
    Image.new("RGBA", (60, 40), (10, 200, 10, 255)).save(path)
    with Image.open(io.BytesIO(stamp_license(path))) as img:
        assert img.format == "JPEG"
        assert img.size == (60, 94)


def test_stamp_filename():
    assert stamp_filename("Sunset") == "Sunset-lsa.jpg"
    assert stamp_filename("") == "image-lsa.jpg"
