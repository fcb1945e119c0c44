import httpx
import pytest

from beaconlock.chain import ChainVerification
from beaconlock.client import ChainOptions, HttpChainClient
from beaconlock.errors import (
    BeaconNotFound,
    ChainHashMismatch,
    DecodingError,
    InvalidRound,
    RandomnessMismatch,
    TransportError,
)
from beaconlock.tests.conftest import FakeMirror, vector


@pytest.fixture
def testnet_mirror(chains, beacon_vectors):
    b = vector(beacon_vectors, "testnet-unchained-3s", 1000000)
    return FakeMirror(chains["testnet-unchained-3s"], {b.round: b})


def test_chain_info_is_fetched_verified_and_cached(testnet_mirror, chains):
    with testnet_mirror.client() as c:
        assert c.chain_info() == chains["testnet-unchained-3s"]
        c.chain_info()
    assert len(testnet_mirror.requests) == 1
    assert str(testnet_mirror.requests[0].url) == "https://mirror.test/info"


def test_cache_off_refetches_and_busts_caches(testnet_mirror):
    with testnet_mirror.client(options=ChainOptions(cache=False)) as c:
        c.chain_info()
        c.chain_info()
    assert len(testnet_mirror.requests) == 2
    assert all("_" in r.url.params for r in testnet_mirror.requests)


def test_base_url_path_is_kept(testnet_mirror, chains):
    base = "https://mirror.test/" + chains["testnet-unchained-3s"].hash_hex + "/"
    with testnet_mirror.client(base) as c:
        c.chain_info()
    assert testnet_mirror.requests[0].url.path == "/" + chains["testnet-unchained-3s"].hash_hex + "/info"


def test_get_verifies_beacon(testnet_mirror):
    with testnet_mirror.client() as c:
        b = c.get(1000000)
        assert b.round == 1000000
        assert c.latest() == b
        assert c.beacon("latest") == b
        assert c.beacon(1000000) == b


def test_tampered_beacon_is_rejected(testnet_mirror):
    b = testnet_mirror.beacons[1000000]
    forged = b.to_dict()
    forged["randomness"] = "00" * 32

    def handler(request):
        if request.url.path.endswith("/info"):
            return httpx.Response(200, json=testnet_mirror.info_json)
        return httpx.Response(200, json=forged)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    with HttpChainClient("https://mirror.test", client=http) as c:
        with pytest.raises(RandomnessMismatch):
            c.get(1000000)
    with HttpChainClient(
        "https://mirror.test", client=http, options=ChainOptions(verify_beacons=False)
    ) as c:
        assert c.get(1000000).randomness == b"\x00" * 32


def test_mirror_returning_another_round(testnet_mirror):
    b = testnet_mirror.beacons.pop(1000000)
    testnet_mirror.beacons[5] = b
    with testnet_mirror.client(options=ChainOptions(verify_beacons=False)) as c:
        with pytest.raises(DecodingError):
            c.get(5)
        with pytest.raises(BeaconNotFound):
            c.get(1000000)
        assert c.latest().round == 1000000


def test_forged_chain_info(testnet_mirror):
    testnet_mirror.info_json = dict(testnet_mirror.info_json, period=4)
    with testnet_mirror.client() as c:
        with pytest.raises(ChainHashMismatch):
            c.chain_info()


def test_pinned_chain(testnet_mirror, chains):
    pin = ChainVerification(hash=chains["mainnet"].hash)
    with testnet_mirror.client(options=ChainOptions(verification=pin)) as c:
        with pytest.raises(ChainHashMismatch):
            c.chain_info()


def test_not_found_and_http_errors(testnet_mirror):
    with testnet_mirror.client() as c:
        with pytest.raises(BeaconNotFound) as ei:
            c.get(42)
        assert ei.value.round == 42
        assert ei.value.retriable

        testnet_mirror.fail_with = 503
        with pytest.raises(TransportError) as ei:
            c.get(43)
        assert ei.value.status == 503
        assert ei.value.retriable


def test_network_error_maps_to_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(transport=httpx.MockTransport(handler))
    with HttpChainClient("https://mirror.test", client=http) as c:
        with pytest.raises(TransportError) as ei:
            c.chain_info()
    assert "ConnectError" in ei.value.reason


def test_non_json_response():
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="<html>")))
    with HttpChainClient("https://mirror.test", client=http) as c:
        with pytest.raises(DecodingError):
            c.chain_info()


def test_invalid_round_argument(testnet_mirror):
    with testnet_mirror.client() as c:
        with pytest.raises(InvalidRound):
            c.get(0)
