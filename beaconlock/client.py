"""
beaconlock • HTTP client for drand-compatible mirrors

Endpoints
---------
- GET {base}/info               chain metadata (JSON, see `ChainInfo.from_dict`)
- GET {base}/public/latest      most recent beacon
- GET {base}/public/{round}     beacon for a round; 404 if not (yet) published

Mirrors are untrusted: chain metadata is hash-checked (and optionally pinned
with `ChainVerification`) and every beacon goes through
`beaconlock.verifier.verify` unless verification is switched off.

This client does not retry. Failures surface as `TransportError` (retriable),
`BeaconNotFound`, or the verification errors.

Usage
-----
    with HttpChainClient("https://api.drand.sh") as c:
        info = c.chain_info()
        b = c.get(1000)
"""

from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx

from beaconlock.beacon import Beacon
from beaconlock.chain import ChainInfo, ChainVerification
from beaconlock.curve import PointEncoding
from beaconlock.errors import BeaconNotFound, DecodingError, InvalidRound, TransportError
from beaconlock.metrics import METRICS
from beaconlock.verifier import verify

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
RoundOrLatest = Union[int, str]


@dataclass(frozen=True)
class ChainOptions:
    """
    Attributes:
        verify_beacons: run full verification on every fetched beacon.
        cache: cache chain info per client and allow HTTP caches; when off,
            a random query parameter defeats intermediary caches.
        verification: optional pinned chain hash / public key.
    """

    verify_beacons: bool = True
    cache: bool = True
    verification: Optional[ChainVerification] = field(default=None)


class HttpChainClient:
    """Synchronous client for one chain on one mirror."""

    def __init__(
        self,
        base_url: str,
        *,
        options: Optional[ChainOptions] = None,
        timeout: Optional[float] = None,
        encoding: Union[str, PointEncoding] = PointEncoding.ZCASH,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.options = options or ChainOptions()
        self.encoding = PointEncoding.parse(encoding)
        self.timeout = float(timeout if timeout is not None else DEFAULT_TIMEOUT)

        self._own_client = client is None
        self._client = client or httpx.Client(
            headers={"Accept": "application/json"},
            timeout=self.timeout,
            follow_redirects=True,
        )
        self._info: Optional[ChainInfo] = None
        self._lock = threading.Lock()

    # --- context management

    def close(self) -> None:
        if self._own_client:
            self._client.close()

    def __enter__(self) -> "HttpChainClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- high-level API

    def chain_info(self) -> ChainInfo:
        """
        Fetch and validate chain metadata.

        Raises:
            TransportError, DecodingError, ChainHashMismatch
        """
        with self._lock:
            if self.options.cache and self._info is not None:
                return self._info
            data = self._get_json("/info", kind="info")
            try:
                info = ChainInfo.from_dict(data, encoding=self.encoding)
                if self.options.verification is not None:
                    self.options.verification.check(info)
            except Exception:
                METRICS.record_fetch("info", "invalid")
                raise
            METRICS.record_fetch("info", "ok")
            log.debug("chain info loaded", extra={"url": self.base_url, "chain": info.hash_hex})
            if self.options.cache:
                self._info = info
            return info

    def get(self, round: int) -> Beacon:
        """Fetch (and by default verify) the beacon for ``round``."""
        if isinstance(round, bool) or not isinstance(round, int) or round < 1:
            raise InvalidRound(round if isinstance(round, int) else 0)
        return self._beacon(str(round), requested=round)

    def latest(self) -> Beacon:
        return self._beacon("latest", requested=None)

    def beacon(self, round_or_latest: RoundOrLatest = "latest") -> Beacon:
        if isinstance(round_or_latest, str) and round_or_latest.strip().lower() == "latest":
            return self.latest()
        return self.get(int(round_or_latest))

    # --- internals

    def _beacon(self, which: str, *, requested: Optional[int]) -> Beacon:
        info = self.chain_info() if self.options.verify_beacons else None
        data = self._get_json(f"/public/{which}", kind="beacon", round=requested)
        try:
            beacon = Beacon.from_dict(data)
            if requested is not None and beacon.round != requested:
                raise DecodingError("beacon", f"mirror returned round {beacon.round} for {requested}")
            if info is not None:
                verify(info, beacon)
        except Exception:
            METRICS.record_fetch("beacon", "invalid")
            raise
        METRICS.record_fetch("beacon", "ok")
        return beacon

    def _get_json(self, path: str, *, kind: str, round: Optional[int] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        params = {} if self.options.cache else {"_": secrets.token_hex(4)}
        try:
            resp = self._client.get(url, params=params, timeout=self.timeout)
        except httpx.HTTPError as e:
            METRICS.record_fetch(kind, "network_error")
            raise TransportError(url, f"{type(e).__name__}: {e}") from e

        if resp.status_code == 404 and kind == "beacon":
            METRICS.record_fetch(kind, "not_found")
            raise BeaconNotFound(round if round is not None else 0)
        self._raise_for_status(resp, url, kind)
        try:
            data = resp.json()
        except ValueError:
            METRICS.record_fetch(kind, "invalid")
            raise DecodingError(kind, "response is not JSON") from None
        if not isinstance(data, dict):
            METRICS.record_fetch(kind, "invalid")
            raise DecodingError(kind, "response is not a JSON object")
        return data

    @staticmethod
    def _raise_for_status(resp: httpx.Response, url: str, kind: str) -> None:
        if resp.status_code < 400:
            return
        METRICS.record_fetch(kind, "http_error")
        detail = (resp.text or "").strip().splitlines()[:1]
        raise TransportError(url, detail[0][:200] if detail else resp.reason_phrase, status=resp.status_code)


# ---------------------------------------------------------------------------
# Module-level conveniences
# ---------------------------------------------------------------------------


def fetch_chain_info(url: str, **kwargs: Any) -> ChainInfo:
    with HttpChainClient(url, **kwargs) as c:
        return c.chain_info()


def fetch_beacon(url: str, round_or_latest: RoundOrLatest = "latest", **kwargs: Any) -> Beacon:
    with HttpChainClient(url, **kwargs) as c:
        return c.beacon(round_or_latest)


__all__ = [
    "ChainOptions",
    "HttpChainClient",
    "fetch_chain_info",
    "fetch_beacon",
]
