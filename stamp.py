"""Render a downloadable copy of an image with a license footer."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Union

from PIL import Image, ImageDraw, ImageFont, ImageOps

from gallery import LICENSE_URL

STAMP_TEXT = f"LSA-1.0 — {LICENSE_URL}"
STAMP_QUALITY = 95
FOOTER_FILL = (0, 0, 0, 191)
FONT_CANDIDATES = ("DejaVuSans-Bold.ttf", "Arial Bold.ttf", "arialbd.ttf")


def footer_geometry(width: int, height: int) -> tuple[int, int, int]:
    margin = max(24, round(width * 0.02))
    footer_height = max(54, round(height * 0.05))
    font_size = max(18, round(footer_height * 0.35))
    return margin, footer_height, font_size


def load_font(size: int) -> ImageFont.ImageFont:
    for candidate in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


def stamp_filename(title: Optional[str]) -> str:
    return f"{title or 'image'}-lsa.jpg"


def stamp_image(source: Image.Image) -> Image.Image:
    img = ImageOps.exif_transpose(source).convert("RGBA")
    width, height = img.size
    margin, footer_height, font_size = footer_geometry(width, height)

    canvas = Image.new("RGBA", (width, height + footer_height), (0, 0, 0, 0))
    canvas.paste(img, (0, 0))
    overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    draw.rectangle((0, height, width, height + footer_height), fill=FOOTER_FILL)
    draw.text(
        (margin, height + footer_height / 2),
        STAMP_TEXT,
        fill=(255, 255, 255, 255),
        font=load_font(font_size),
        anchor="lm",
    )
    canvas = Image.alpha_composite(canvas, overlay)

    # JPEG has no alpha; flatten onto black like a canvas export does.
    background = Image.new("RGB", canvas.size, (0, 0, 0))
    background.paste(canvas, mask=canvas.split()[3])
    return background


def stamp_license(source: Union[str, Path]) -> bytes:
    with Image.open(source) as img:
        stamped = stamp_image(img)
    buffer = io.BytesIO()
    stamped.save(buffer, "JPEG", quality=STAMP_QUALITY)
    return buffer.getvalue()
