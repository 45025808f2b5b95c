#!/usr/bin/env python3
"""Embed the LSA-1.0 notice into image XMP metadata using exiftool.

Pixel data is left untouched; only metadata is rewritten.
"""

import argparse
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from gallery import LICENSE_URL

NOTICE = (
    "Licensed under Liberty-ShareAlike 1.0 (LSA-1.0). If you distribute adaptations, "
    "license them under LSA-1.0 and include this full text or a stable link. "
    f"No attribution required. {LICENSE_URL}"
)
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}
DEFAULT_IMAGE_DIR = Path("img")
EXIFTOOL = "exiftool"

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """The metadata tool could not update a file."""


class ExiftoolEmbedder:
    def __init__(
        self,
        executable: str = EXIFTOOL,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        notice: str = NOTICE,
        license_url: str = LICENSE_URL,
    ) -> None:
        self.executable = executable
        self.runner = runner
        self.notice = notice
        self.license_url = license_url

    def command(self, path: Path) -> List[str]:
        return [
            self.executable,
            "-overwrite_original",
            f"-XMP-dc:Rights={self.notice}",
            f"-XMP-cc:license={self.license_url}",
            str(path),
        ]

    def embed_notice(self, path: Path) -> None:
        try:
            result = self.runner(self.command(path), stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as exc:
            raise ToolError(f"{self.executable} could not run: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace") if isinstance(result.stderr, bytes) else result.stderr
            raise ToolError(f"{self.executable} exited with {result.returncode}: {(stderr or '').strip()}")


@dataclass
class EmbedSummary:
    embedded: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def iter_image_files(directory: Path) -> Iterable[Path]:
    for path in sorted(directory.iterdir(), key=lambda p: p.name):
        if path.is_file() and path.suffix.lower() in IMAGE_EXTENSIONS:
            yield path


def embed_directory(directory: Path, embedder) -> EmbedSummary:
    """Embed the notice into every image; per-file failures are logged and skipped."""
    summary = EmbedSummary()
    if not directory.is_dir():
        logger.info("No image directory at %s, nothing to do", directory)
        return summary

    for path in iter_image_files(directory):
        try:
            embedder.embed_notice(path)
        except ToolError as exc:
            logger.warning("Skipped (exiftool error): %s: %s", path.name, exc)
            summary.skipped.append(path.name)
            continue
        logger.info("Embedded license into %s", path.name)
        summary.embedded.append(path.name)
    return summary


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--images",
        type=Path,
        default=DEFAULT_IMAGE_DIR,
        help=f"Directory that contains the images (default: {DEFAULT_IMAGE_DIR}).",
    )
    parser.add_argument(
        "--exiftool",
        default=shutil.which(EXIFTOOL) or EXIFTOOL,
        help="Path to the exiftool executable.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging output.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(message)s")
    summary = embed_directory(args.images.expanduser(), ExiftoolEmbedder(args.exiftool))
    logger.info("Done. Embedded=%d, Skipped=%d", len(summary.embedded), len(summary.skipped))


if __name__ == "__main__":
    main()
