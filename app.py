#!/usr/bin/env python3
"""LSA Gallery preview server."""

from __future__ import annotations

import argparse
import json
import logging
import mimetypes
import time
from http import HTTPStatus
import http.server
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urlparse

from gallery import (
    MANIFEST_PATH,
    SORT_MODES,
    DEFAULT_SORT,
    ImageRecord,
    find_record_by_id,
    image_id,
    load_manifest,
    matches_query,
    normalize_query,
    sort_records,
)
from session import image_path
from stamp import stamp_filename, stamp_license

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_ROOT = Path(".")
MANIFEST_CACHE_TTL_SECONDS = 30
API_ROUTES = {
    "/api/images": "api_images",
    "/api/image": "api_image",
    "/api/stamp": "api_stamp",
}

_MANIFEST_CACHE: Dict[str, object] = {
    "root": None,
    "generated": 0.0,
    "records": [],
}

mimetypes.add_type("application/javascript", ".js")
mimetypes.add_type("image/svg+xml", ".svg")
mimetypes.add_type("application/manifest+json", ".webmanifest")
mimetypes.add_type("image/avif", ".avif")
mimetypes.add_type("image/webp", ".webp")

logger = logging.getLogger(__name__)


def manifest_records(root: Path) -> List[ImageRecord]:
    """Manifest records for ``root``, re-read at most every TTL seconds.

    A missing or unreadable manifest yields an empty gallery.
    """
    now = time.time()
    if _MANIFEST_CACHE["root"] == root and now - float(_MANIFEST_CACHE["generated"]) < MANIFEST_CACHE_TTL_SECONDS:
        return list(_MANIFEST_CACHE["records"])

    try:
        records = load_manifest(root / MANIFEST_PATH)
    except (OSError, ValueError) as exc:
        logger.error("Failed to load manifest: %s", exc)
        records = []

    _MANIFEST_CACHE["root"] = root
    _MANIFEST_CACHE["generated"] = now
    _MANIFEST_CACHE["records"] = records
    return list(records)


def clear_manifest_cache() -> None:
    _MANIFEST_CACHE.update({"root": None, "generated": 0.0, "records": []})


def record_payload(record: ImageRecord) -> Dict[str, object]:
    payload = record.to_dict()
    payload["id"] = image_id(record)
    return payload


def images_payload(root: Path, query: str, sort_mode: str) -> Dict[str, object]:
    if sort_mode not in SORT_MODES:
        sort_mode = DEFAULT_SORT
    query = normalize_query(query)
    records = sort_records(manifest_records(root), sort_mode)
    visible = [record_payload(record) for record in records if matches_query(record, query)]
    return {"images": visible, "total": len(records), "query": query, "sort": sort_mode}


def warm_cache(root: Path) -> None:
    """Populate the manifest cache eagerly so first request isn't delayed."""
    records = manifest_records(root)
    logger.info("Loaded %d manifest records", len(records))


class GalleryRequestHandler(http.server.SimpleHTTPRequestHandler):
    root_path: Path = DEFAULT_ROOT

    def __init__(self, *args, **kwargs):
        super().__init__(*args, directory=str(self.root_path), **kwargs)

    def do_GET(self) -> None:  # noqa: N802 - standard library signature
        parsed = urlparse(self.path)
        if parsed.path.startswith("/api/"):
            self.handle_api(parsed)
            return
        if parsed.path in {"", "/"} or parsed.path.startswith("/image/"):
            self.serve_index()
            return
        if parsed.path == "/" + MANIFEST_PATH:
            self.serve_manifest()
            return
        super().do_GET()

    # API handlers
    def handle_api(self, parsed) -> None:
        route = parsed.path
        params = parse_qs(parsed.query or "")
        handler = getattr(self, API_ROUTES.get(route, ""), None)
        if handler is None:
            self.send_json({"error": "Unknown endpoint"}, status=HTTPStatus.NOT_FOUND)
            return
        try:
            handler(params)
        except ValueError as exc:
            self.send_json({"error": str(exc)}, status=HTTPStatus.BAD_REQUEST)
        except FileNotFoundError:
            self.send_json({"error": "Image not found"}, status=HTTPStatus.NOT_FOUND)
        except Exception:  # noqa: BLE001 - any other failure becomes a 500
            logger.exception("Unexpected error handling %s", route)
            self.send_json({"error": "Internal server error"}, status=HTTPStatus.INTERNAL_SERVER_ERROR)

    def lookup_record(self, params: Dict[str, List[str]]) -> ImageRecord:
        identifier = params.get("id", [""])[0]
        if not identifier:
            raise ValueError("Missing image id")
        record = find_record_by_id(manifest_records(self.root_path), identifier)
        if record is None:
            raise FileNotFoundError(identifier)
        return record

    def api_images(self, params: Dict[str, List[str]]) -> None:
        query = params.get("q", [""])[0]
        sort_mode = params.get("sort", [DEFAULT_SORT])[0].lower()
        self.send_json(images_payload(self.root_path, query, sort_mode))

    def api_image(self, params: Dict[str, List[str]]) -> None:
        record = self.lookup_record(params)
        self.send_json(record_payload(record))

    def api_stamp(self, params: Dict[str, List[str]]) -> None:
        record = self.lookup_record(params)
        target = image_path(self.root_path, record)
        if not target.is_file():
            raise FileNotFoundError(target)
        filename = stamp_filename(record.title or record.file).replace('"', "'")
        self.send_bytes(
            stamp_license(target),
            "image/jpeg",
            extra_headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    # Helpers
    def serve_index(self) -> None:
        index_path = self.root_path / "index.html"
        if not index_path.exists():
            self.send_error(HTTPStatus.NOT_FOUND, "index.html missing")
            return
        self.send_file(index_path)

    def serve_manifest(self) -> None:
        manifest_path = self.root_path / MANIFEST_PATH
        if not manifest_path.is_file():
            self.send_error(HTTPStatus.NOT_FOUND, "Manifest missing")
            return
        self.send_file(manifest_path, cache_control="no-store")

    def send_json(self, payload: Dict[str, object], status: HTTPStatus = HTTPStatus.OK) -> None:
        self.send_bytes(
            json.dumps(payload).encode("utf-8"),
            "application/json; charset=utf-8",
            status=status,
            extra_headers={"Cache-Control": "no-store"},
        )

    def send_bytes(
        self,
        data: bytes,
        content_type: str,
        status: HTTPStatus = HTTPStatus.OK,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """Write a complete in-memory response body."""
        try:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(data)))
            for name, value in (extra_headers or {}).items():
                self.send_header(name, value)
            self.end_headers()
            self.wfile.write(data)
        except BrokenPipeError:
            self.log_message("Client closed connection while sending %s response", content_type)

    def send_file(self, path: Path, cache_control: Optional[str] = None) -> None:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        try:
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(path.stat().st_size))
            if cache_control:
                self.send_header("Cache-Control", cache_control)
            self.end_headers()
            with path.open("rb") as file_obj:
                while True:
                    chunk = file_obj.read(64_000)
                    if not chunk:
                        break
                    self.wfile.write(chunk)
        except BrokenPipeError:
            self.log_message("Client closed connection while streaming file %s", path)

    def log_message(self, format: str, *args) -> None:  # noqa: A003 - match base signature
        logger.info("[HTTP] %s - %s", self.address_string(), format % args)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve an LSA Gallery site directory for local preview.")
    parser.add_argument(
        "--root",
        type=Path,
        default=DEFAULT_ROOT,
        help="Site directory containing index.html, assets/, img/ and data/images.json (default: .)",
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help=f"Host to bind (default: {DEFAULT_HOST})")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port to listen on (default: {DEFAULT_PORT})")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging output.")
    return parser.parse_args(argv)


def make_server(root_path: Path, host: str, port: int) -> http.server.ThreadingHTTPServer:
    handler_class = type("BoundGalleryRequestHandler", (GalleryRequestHandler,), {"root_path": root_path})
    return http.server.ThreadingHTTPServer((host, port), handler_class)


def main(argv: Optional[Iterable[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(asctime)s %(levelname)s %(message)s")
    root_path = args.root.expanduser().resolve()
    if not root_path.exists():
        raise FileNotFoundError(f"Site directory not found: {root_path}")

    logger.info("Warming caches...")
    warm_cache(root_path)

    server = make_server(root_path, args.host, args.port)
    logger.info("Serving gallery from %s", root_path)
    logger.info("Open http://%s:%s in your browser", args.host, server.server_address[1])
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down server")
    finally:
        server.server_close()


if __name__ == "__main__":
    main()
