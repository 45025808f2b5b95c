"""Offline cache agent: precaches the app shell and answers fetches by request class."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

import requests

CACHE_NAME = "lsa-gallery-v1"
PRECACHE_ASSETS = (
    "",
    "index.html",
    "assets/style.css",
    "assets/app.js",
    "assets/logo.svg",
    "assets/manifest.webmanifest",
    "data/images.json",
)
MANIFEST_SUFFIX = "/data/images.json"
FETCH_TIMEOUT_SECONDS = 10

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Raised when neither the network nor the cache can answer a request."""


@dataclass(frozen=True)
class Request:
    url: str
    mode: str = "no-cors"
    method: str = "GET"

    @property
    def is_navigation(self) -> bool:
        return self.mode == "navigate"

    @property
    def is_manifest(self) -> bool:
        path = self.url.split("?", 1)[0].split("#", 1)[0]
        return path.endswith(MANIFEST_SUFFIX)


@dataclass(frozen=True)
class Response:
    url: str
    status: int
    body: bytes = b""
    headers: Tuple[Tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


Fetcher = Callable[[Request], Response]


class RequestsFetcher:
    """Network fetcher backed by a requests session."""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = FETCH_TIMEOUT_SECONDS) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, request: Request) -> Response:
        try:
            reply = self.session.request(request.method, request.url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(f"Network request failed for {request.url}: {exc}") from exc
        return Response(
            url=request.url,
            status=reply.status_code,
            body=reply.content,
            headers=tuple(reply.headers.items()),
        )


@dataclass
class CacheBucket:
    name: str
    entries: Dict[str, Response] = field(default_factory=dict)

    def match(self, url: str) -> Optional[Response]:
        return self.entries.get(url)

    def put(self, url: str, response: Response) -> None:
        self.entries[url] = response

    def put_all(self, responses: Mapping[str, Response]) -> None:
        self.entries.update(responses)


class CacheStorage:
    """Named cache buckets, as kept by the browser for a worker origin."""

    def __init__(self) -> None:
        self._buckets: Dict[str, CacheBucket] = {}

    def open(self, name: str) -> CacheBucket:
        return self._buckets.setdefault(name, CacheBucket(name))

    def keys(self) -> List[str]:
        return list(self._buckets)

    def delete(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    def match(self, url: str) -> Optional[Response]:
        for bucket in self._buckets.values():
            cached = bucket.match(url)
            if cached is not None:
                return cached
        return None


class OfflineCacheAgent:
    """Serve the gallery from cache when offline, keeping the manifest fresh when online.

    Navigation requests and the manifest go network-first; everything else
    is cache-first and populated on miss.
    """

    def __init__(
        self,
        origin: str,
        base: str = "/",
        fetcher: Optional[Fetcher] = None,
        storage: Optional[CacheStorage] = None,
        cache_name: str = CACHE_NAME,
        assets: Iterable[str] = PRECACHE_ASSETS,
    ) -> None:
        self.origin = origin.rstrip("/")
        self.base = base if base.endswith("/") else base + "/"
        self.fetcher = fetcher or RequestsFetcher()
        self.storage = storage or CacheStorage()
        self.cache_name = cache_name
        self.assets = tuple(assets)

    @property
    def start_url(self) -> str:
        return self.origin + self.base

    def asset_url(self, asset: str) -> str:
        return self.start_url + asset

    def install(self) -> None:
        """Precache the app shell; writes nothing unless every asset succeeds."""
        fetched: Dict[str, Response] = {}
        for asset in self.assets:
            url = self.asset_url(asset)
            response = self.fetcher(Request(url))
            if not response.ok:
                raise FetchError(f"Precache of {url} failed with status {response.status}")
            fetched[url] = response
        self.storage.open(self.cache_name).put_all(fetched)
        logger.info("Installed %s with %d assets", self.cache_name, len(fetched))

    def activate(self) -> List[str]:
        stale = [name for name in self.storage.keys() if name != self.cache_name]
        for name in stale:
            self.storage.delete(name)
            logger.info("Deleted stale cache %s", name)
        return stale

    def handle_fetch(self, request: Request) -> Response:
        if request.is_navigation:
            return self._navigation(request)
        if request.is_manifest:
            return self._network_first(request)
        return self._cache_first(request)

    def _store(self, request: Request, response: Response) -> None:
        if request.method == "GET" and response.ok:
            self.storage.open(self.cache_name).put(request.url, response)

    def _navigation(self, request: Request) -> Response:
        try:
            response = self.fetcher(request)
        except FetchError as exc:
            logger.debug("Navigation fetch failed: %s", exc)
            response = None
        if response is not None and response.ok:
            return response
        shell = self.storage.match(self.start_url)
        if shell is not None:
            return shell
        if response is not None:
            return response
        raise FetchError(f"Offline and no cached start page for {request.url}")

    def _network_first(self, request: Request) -> Response:
        try:
            response = self.fetcher(request)
        except FetchError:
            cached = self.storage.match(request.url)
            if cached is None:
                raise
            logger.info("Serving cached manifest for %s", request.url)
            return cached
        self._store(request, response)
        return response

    def _cache_first(self, request: Request) -> Response:
        cached = self.storage.match(request.url)
        if cached is not None:
            return cached
        response = self.fetcher(request)
        self._store(request, response)
        return response
