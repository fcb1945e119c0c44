"""
Shared fixtures: published drand vectors and a throwaway signer.

The signer exists only to produce beacons for rounds and schemes that have no
published vector (and to decrypt timelocked data in tests). It holds a fixed
secret scalar and is never used outside the test suite.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from beaconlock.beacon import Beacon
from beaconlock.chain import ChainInfo, compute_chain_hash
from beaconlock.client import HttpChainClient
from beaconlock.constants import SCHEME_UNCHAINED, SCHEME_UNCHAINED_G1_RFC9380
from beaconlock.curve import encode_point, generator, mul
from beaconlock.schemes import scheme_for

_HERE = os.path.dirname(__file__)
_VECTORS = os.path.normpath(os.path.join(_HERE, "..", "test_vectors"))

SECRET = 0x2A5F_91C3_0D7E_44B1_8C66_17F2_E3A9_5B04_1F8D_C2E7_6A31_9B0C_47D5_E812_3C6F_A9B7


def _load(name: str) -> Any:
    with open(os.path.join(_VECTORS, name), "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="session")
def chain_dicts() -> Dict[str, Dict[str, Any]]:
    return _load("chains.json")


@pytest.fixture(scope="session")
def chains(chain_dicts) -> Dict[str, ChainInfo]:
    return {name: ChainInfo.from_dict(d) for name, d in chain_dicts.items()}


@pytest.fixture(scope="session")
def beacon_vectors() -> List[Dict[str, Any]]:
    return _load("beacons.json")


def vector(beacon_vectors: List[Dict[str, Any]], chain: str, round: int) -> Beacon:
    for v in beacon_vectors:
        if v["chain"] == chain and v["beacon"]["round"] == round:
            return Beacon.from_dict(v["beacon"])
    raise KeyError((chain, round))


# ---------------------------------------------------------------------------
# Throwaway signer
# ---------------------------------------------------------------------------


@dataclass
class Signer:
    chain: ChainInfo
    secret: int = SECRET

    def sign(self, round: int, previous_signature: Optional[bytes] = None) -> Beacon:
        scheme = self.chain.scheme
        point = mul(scheme.identity_point(round, previous_signature), self.secret)
        sig = scheme.encode_signature(point)
        return Beacon(
            round=round,
            randomness=hashlib.sha256(sig).digest(),
            signature=sig,
            previous_signature=previous_signature,
        )


def make_chain(
    scheme_id: str,
    *,
    secret: int = SECRET,
    period: int = 3,
    genesis_time: int = 1_700_000_000,
    beacon_id: str = "beaconlock-test",
) -> ChainInfo:
    scheme = scheme_for(scheme_id)
    pk = encode_point(scheme.public_key_group, mul(generator(scheme.public_key_group), secret))
    group_hash = bytes(range(32))
    return ChainInfo(
        public_key=pk,
        period=period,
        genesis_time=genesis_time,
        hash=compute_chain_hash(
            public_key=pk,
            period=period,
            genesis_time=genesis_time,
            group_hash=group_hash,
            beacon_id=beacon_id,
        ),
        group_hash=group_hash,
        scheme_id=scheme_id,
        beacon_id=beacon_id,
    )


@pytest.fixture(scope="session")
def g1_signer() -> Signer:
    """Unchained chain with its public key on G1 (signatures on G2)."""
    return Signer(make_chain(SCHEME_UNCHAINED))


@pytest.fixture(scope="session")
def g2_signer() -> Signer:
    """RFC 9380 chain with its public key on G2 (signatures on G1)."""
    return Signer(make_chain(SCHEME_UNCHAINED_G1_RFC9380))


# ---------------------------------------------------------------------------
# HTTP mirror
# ---------------------------------------------------------------------------


class FakeMirror:
    """
    In-memory drand mirror served through `httpx.MockTransport`.

    ``beacons`` maps round -> Beacon; ``latest`` is the highest key. Every
    request is appended to ``requests``.
    """

    def __init__(self, info: ChainInfo, beacons: Optional[Dict[int, Beacon]] = None) -> None:
        self.info_json: Dict[str, Any] = info.to_dict()
        self.beacons: Dict[int, Beacon] = dict(beacons or {})
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, text="mirror unavailable")
        path = request.url.path.rstrip("/")
        if path.endswith("/info"):
            return httpx.Response(200, json=self.info_json)
        if "/public/" in path:
            which = path.rsplit("/", 1)[-1]
            if which == "latest":
                if not self.beacons:
                    return httpx.Response(404, text="no beacons")
                return httpx.Response(200, json=self.beacons[max(self.beacons)].to_dict())
            b = self.beacons.get(int(which))
            if b is None:
                return httpx.Response(404, text="round not found")
            return httpx.Response(200, json=b.to_dict())
        return httpx.Response(404, text="unknown path")

    def client(self, base_url: str = "https://mirror.test", **kw: Any) -> HttpChainClient:
        http = httpx.Client(transport=httpx.MockTransport(self.handler))
        return HttpChainClient(base_url, client=http, **kw)


@pytest.fixture
def mirror_factory() -> Callable[..., FakeMirror]:
    return FakeMirror


__all__ = ["Signer", "FakeMirror", "make_chain", "vector"]
