#!/usr/bin/env python3
"""Scan an image directory and rewrite the gallery manifest (data/images.json)."""

import argparse
import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from gallery import encode_uri_component

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".avif", ".gif"}
DEFAULT_IMAGE_DIR = Path("img")
DEFAULT_OUTPUT = Path("data") / "images.json"
MIME_BY_FORMAT = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
    "AVIF": "image/avif",
}

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--images",
        type=Path,
        default=DEFAULT_IMAGE_DIR,
        help=f"Directory that contains the images (default: {DEFAULT_IMAGE_DIR}).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"Manifest file to rewrite (default: {DEFAULT_OUTPUT}).",
    )
    parser.add_argument(
        "--src-prefix",
        default="img/",
        help="Prefix for each record's src, relative to the site root (default: img/).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )
    return parser.parse_args(argv)


def iter_image_files(directory: Path) -> Iterator[Path]:
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS:
            yield path


def title_from_name(name: str) -> str:
    stem = Path(name).stem
    return re.sub(r"\s+", " ", re.sub(r"[_\-]+", " ", stem)).strip()


def read_dimensions(path: Path) -> Tuple[Optional[int], Optional[int], str]:
    try:
        with Image.open(path) as img:
            width, height = img.size
            return width, height, MIME_BY_FORMAT.get(img.format or "", "")
    except (FileNotFoundError, UnidentifiedImageError):
        return None, None, ""
    except Exception:
        logger.exception("Unexpected error while reading dimensions from %s", path)
        return None, None, ""


def load_existing(manifest_path: Path) -> Dict[str, Dict[str, object]]:
    """Previous manifest entries keyed by filename; empty when missing or corrupt."""
    if not manifest_path.exists():
        return {}
    try:
        entries = json.loads(manifest_path.read_text(encoding="utf-8"))
    except ValueError as exc:
        logger.warning("Ignoring unreadable manifest %s: %s", manifest_path, exc)
        return {}
    if not isinstance(entries, list):
        logger.warning("Ignoring manifest %s: expected a JSON array", manifest_path)
        return {}

    existing: Dict[str, Dict[str, object]] = {}
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not isinstance(entry.get("file"), str):
            logger.warning("Skipping manifest entry %d without a file name", index)
            continue
        existing.setdefault(entry["file"], entry)
    return existing


def build_record(path: Path, previous: Dict[str, object], src_prefix: str = "img/") -> Dict[str, object]:
    data = path.read_bytes()
    file_stat = path.stat()
    width, height, mime = read_dimensions(path)

    record = {
        "file": path.name,
        "src": f"{src_prefix}{encode_uri_component(path.name)}",
        "title": previous.get("title") or title_from_name(path.name),
        "description": previous.get("description") or "",
        "alt": previous.get("alt") or "",
        "width": width or None,
        "height": height or None,
        "bytes": file_stat.st_size,
        "mime": mime,
        "tags": previous.get("tags") or [],
        "added": previous.get("added") or file_stat.st_mtime_ns // 1_000_000,
        "sha256": hashlib.sha256(data).hexdigest(),
    }
    if previous.get("creator"):
        record["creator"] = previous["creator"]
    return record


def generate_manifest(image_dir: Path, output: Path, src_prefix: str = "img/") -> List[Dict[str, object]]:
    if not image_dir.is_dir():
        raise FileNotFoundError(f"Image directory does not exist: {image_dir}")

    existing = load_existing(output)
    records = [
        build_record(path, existing.get(path.name, {}), src_prefix)
        for path in iter_image_files(image_dir)
    ]

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info("Wrote %d records to %s", len(records), output)
    return records


def main(argv: Optional[Iterable[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(message)s")
    generate_manifest(args.images.expanduser(), args.output.expanduser(), args.src_prefix)


if __name__ == "__main__":
    main()
