import pytest
import requests

from offline_cache import (
    CACHE_NAME,
    PRECACHE_ASSETS,
    CacheStorage,
    FetchError,
    OfflineCacheAgent,
    Request,
    RequestsFetcher,
    Response,
)

ORIGIN = "https://gallery.test"
MANIFEST_URL = ORIGIN + "/data/images.json"


class StubNetwork:
    """Fetcher that answers from a URL table and can be switched offline."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.online = True
        self.calls = []

    def __call__(self, request):
        self.calls.append(request.url)
        if not self.online:
            raise FetchError(f"offline: {request.url}")
        status, body = self.routes.get(request.url, (404, b"missing"))
        return Response(request.url, status, body)


@pytest.fixture
def network():
    routes = {ORIGIN + "/" + asset: (200, f"asset:{asset}".encode()) for asset in PRECACHE_ASSETS}
    return StubNetwork(routes)


@pytest.fixture
def agent(network):
    return OfflineCacheAgent(ORIGIN, "/", fetcher=network)


def test_install_precaches_app_shell(agent):
    agent.install()
    bucket = agent.storage.open(CACHE_NAME)
    assert set(bucket.entries) == {ORIGIN + "/" + asset for asset in PRECACHE_ASSETS}


def test_shell_loads_offline_after_install(agent, network):
    agent.install()
    network.online = False
    for asset in PRECACHE_ASSETS:
        response = agent.handle_fetch(Request(ORIGIN + "/" + asset))
        assert response.ok
    page = agent.handle_fetch(Request(ORIGIN + "/image/anything", mode="navigate"))
    assert page.body == b"asset:"


def test_install_is_all_or_nothing(agent, network):
    network.routes[ORIGIN + "/assets/logo.svg"] = (500, b"")
    with pytest.raises(FetchError):
        agent.install()
    assert agent.storage.open(CACHE_NAME).entries == {}


def test_activate_deletes_other_versions():
    storage = CacheStorage()
    storage.open("lsa-gallery-v0")
    storage.open("unrelated")
    storage.open(CACHE_NAME)
    agent = OfflineCacheAgent(ORIGIN, fetcher=StubNetwork(), storage=storage)
    assert sorted(agent.activate()) == ["lsa-gallery-v0", "unrelated"]
    assert storage.keys() == [CACHE_NAME]


def test_manifest_network_first_updates_cache(agent, network):
    network.routes[MANIFEST_URL] = (200, b"[1]")
    assert agent.handle_fetch(Request(MANIFEST_URL)).body == b"[1]"
    network.routes[MANIFEST_URL] = (200, b"[1,2]")
    assert agent.handle_fetch(Request(MANIFEST_URL)).body == b"[1,2]"
    assert agent.storage.match(MANIFEST_URL).body == b"[1,2]"
    assert network.calls.count(MANIFEST_URL) == 2


def test_manifest_falls_back_to_last_cached_copy(agent, network):
    network.routes[MANIFEST_URL] = (200, b'[{"file": "a.jpg"}]')
    first = agent.handle_fetch(Request(MANIFEST_URL))
    network.online = False
    again = agent.handle_fetch(Request(MANIFEST_URL))
    assert again.body == first.body == b'[{"file": "a.jpg"}]'


def test_manifest_failure_without_cache_propagates(agent, network):
    network.online = False
    with pytest.raises(FetchError):
        agent.handle_fetch(Request(MANIFEST_URL))


def test_manifest_under_base_path_is_recognised():
    assert Request("https://x.test/lsa/data/images.json?v=2").is_manifest
    assert not Request("https://x.test/lsa/data/other.json").is_manifest


def test_navigation_non_success_falls_back_to_start_page(agent, network):
    agent.install()
    response = agent.handle_fetch(Request(ORIGIN + "/missing", mode="navigate"))
    assert response.ok
    assert response.body == b"asset:"


def test_navigation_online_uses_network(agent, network):
    network.routes[ORIGIN + "/image/a"] = (200, b"fresh")
    assert agent.handle_fetch(Request(ORIGIN + "/image/a", mode="navigate")).body == b"fresh"


def test_navigation_offline_without_shell_fails(agent, network):
    network.online = False
    with pytest.raises(FetchError):
        agent.handle_fetch(Request(ORIGIN + "/", mode="navigate"))


def test_assets_are_cache_first_and_populated_on_miss(agent, network):
    url = ORIGIN + "/img/a.jpg"
    network.routes[url] = (200, b"jpeg")
    assert agent.handle_fetch(Request(url)).body == b"jpeg"
    network.routes[url] = (200, b"changed")
    assert agent.handle_fetch(Request(url)).body == b"jpeg"
    assert network.calls.count(url) == 1


def test_asset_failures_are_not_cached(agent, network):
    url = ORIGIN + "/img/gone.jpg"
    assert agent.handle_fetch(Request(url)).status == 404
    assert agent.storage.match(url) is None


def test_asset_offline_miss_fails_observably(agent, network):
    network.online = False
    with pytest.raises(FetchError):
        agent.handle_fetch(Request(ORIGIN + "/img/a.jpg"))


def test_requests_fetcher_maps_connection_errors():
    class BrokenSession:
        def request(self, method, url, timeout):
            raise requests.ConnectionError("down")

    with pytest.raises(FetchError):
        RequestsFetcher(session=BrokenSession())(Request(MANIFEST_URL))
