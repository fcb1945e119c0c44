"""
beaconlock.chain
================

Chain metadata (`ChainInfo`), the chain hash that identifies a network, and
the round <-> wall-clock arithmetic every consumer relies on.

Round schedule
--------------
Round 1 is published at ``genesis_time`` and every ``period`` seconds after
that one more round appears:

    time_of_round(r) = genesis_time + (r - 1) * period           (r >= 1)
    round_at(t)      = 0                                          (t < genesis)
                     = floor((t - genesis_time) / period) + 1     (otherwise)

so ``round_at(time_of_round(r)) == r`` for every r >= 1. Nothing here reads
the system clock unless a ``now`` argument is left unset.

Chain hash
----------
SHA-256 over be32(period) || be64(genesis_time) || public_key (zcash bytes)
|| group_hash, then the beacon id unless it is "default". The scheme id is
not part of the hash. The hash is recomputed whenever a `ChainInfo` is built
from external data.
"""

from __future__ import annotations

import datetime as _dt
import hashlib
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from beaconlock.constants import CHAIN_HASH_SIZE, DEFAULT_BEACON_ID, DEFAULT_SCHEME_ID
from beaconlock.curve import PointEncoding
from beaconlock.errors import ChainHashMismatch, DecodingError, InvalidRound
from beaconlock.schemes import Scheme, scheme_for
from beaconlock.utils import BytesOrHex, from_hex, to_hex

Instant = Union[int, float, _dt.datetime]


def _unix(instant: Instant) -> float:
    if isinstance(instant, _dt.datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=_dt.timezone.utc)
        return instant.timestamp()
    if isinstance(instant, bool) or not isinstance(instant, (int, float)):
        raise TypeError(f"expected unix seconds or datetime, got {type(instant).__name__}")
    return instant


def compute_chain_hash(
    *,
    public_key: bytes,
    period: int,
    genesis_time: int,
    group_hash: bytes,
    beacon_id: str = DEFAULT_BEACON_ID,
) -> bytes:
    """Chain hash over zcash-encoded ``public_key``."""
    h = hashlib.sha256()
    h.update(int(period).to_bytes(4, "big"))
    h.update(int(genesis_time).to_bytes(8, "big", signed=True))
    h.update(bytes(public_key))
    h.update(bytes(group_hash))
    if beacon_id and beacon_id != DEFAULT_BEACON_ID:
        h.update(beacon_id.encode("utf-8"))
    return h.digest()


@dataclass(frozen=True)
class ChainInfo:
    """
    Immutable description of one beacon network.

    Attributes
    ----------
    public_key : bytes
        Collective public key, compressed, in the group the scheme assigns.
    period : int
        Seconds between rounds (> 0).
    genesis_time : int
        Unix seconds at which round 1 is published.
    hash : bytes
        32-byte chain hash.
    group_hash : bytes
        Hash of the operator group file (round 1 of chained schemes signs over it).
    scheme_id : str
        Scheme registry key.
    beacon_id : str
        Network label ("default" for the original mainnet).
    encoding : PointEncoding
        Byte convention of ``public_key`` and of this chain's signatures.
    """

    public_key: bytes
    period: int
    genesis_time: int
    hash: bytes
    group_hash: bytes
    scheme_id: str = DEFAULT_SCHEME_ID
    beacon_id: str = DEFAULT_BEACON_ID
    encoding: PointEncoding = field(default=PointEncoding.ZCASH)

    def __post_init__(self) -> None:
        if isinstance(self.period, bool) or not isinstance(self.period, int) or self.period <= 0:
            raise DecodingError("chain info", f"period must be a positive integer, got {self.period!r}")
        if isinstance(self.genesis_time, bool) or not isinstance(self.genesis_time, int):
            raise DecodingError("chain info", "genesis_time must be an integer")
        if len(self.hash) != CHAIN_HASH_SIZE:
            raise DecodingError("chain info", f"hash length {len(self.hash)} != {CHAIN_HASH_SIZE}")
        object.__setattr__(self, "encoding", PointEncoding.parse(self.encoding))

    # ----- scheme / hash -------------------------------------------------------

    @property
    def scheme(self) -> Scheme:
        """Scheme for this chain, carrying the chain's point encoding."""
        return scheme_for(self.scheme_id, encoding=self.encoding)

    def compute_hash(self) -> bytes:
        pk = self.public_key
        if self.encoding is not PointEncoding.ZCASH:
            pk = self.scheme.canonical_bytes(self.scheme.public_key_group, pk)
        return compute_chain_hash(
            public_key=pk,
            period=self.period,
            genesis_time=self.genesis_time,
            group_hash=self.group_hash,
            beacon_id=self.beacon_id,
        )

    def verify_hash(self) -> None:
        """Raise `ChainHashMismatch` if the fields do not hash to ``hash``."""
        got = self.compute_hash()
        if got != self.hash:
            raise ChainHashMismatch(expected_hex=to_hex(self.hash), got_hex=to_hex(got))

    @property
    def hash_hex(self) -> str:
        return to_hex(self.hash)

    # ----- rounds -----------------------------------------------------------------

    def round_at(self, instant: Instant) -> int:
        """Latest round published at ``instant`` (0 before genesis)."""
        t = _unix(instant)
        if t < self.genesis_time:
            return 0
        return int((t - self.genesis_time) // self.period) + 1

    def time_of_round(self, round: int) -> int:
        """Unix seconds at which ``round`` is published."""
        if round < 1:
            raise InvalidRound(round)
        return self.genesis_time + (round - 1) * self.period

    def current_round(self, now: Optional[Instant] = None) -> int:
        return self.round_at(time.time() if now is None else now)

    def round_datetime(self, round: int) -> _dt.datetime:
        return _dt.datetime.fromtimestamp(self.time_of_round(round), tz=_dt.timezone.utc)

    # ----- (de)serialization -------------------------------------------------------

    @classmethod
    def from_dict(
        cls,
        d: Mapping[str, Any],
        *,
        encoding: Union[str, PointEncoding] = PointEncoding.ZCASH,
        verify: bool = True,
    ) -> "ChainInfo":
        """
        Build from drand's ``/info`` JSON shape.

        Raises:
            DecodingError: missing or malformed fields.
            ChainHashMismatch: when ``verify`` and the fields do not hash to ``hash``.
        """
        if not isinstance(d, Mapping):
            raise DecodingError("chain info", "expected a JSON object")
        try:
            meta = d.get("metadata") or {}
            beacon_id = meta.get("beaconID", d.get("beacon_id", DEFAULT_BEACON_ID)) or DEFAULT_BEACON_ID
            info = cls(
                public_key=from_hex("public_key", d["public_key"]),
                period=_as_int("period", d["period"]),
                genesis_time=_as_int("genesis_time", d["genesis_time"]),
                hash=from_hex("hash", d["hash"], CHAIN_HASH_SIZE),
                group_hash=from_hex("groupHash", d.get("groupHash", d.get("group_hash", ""))),
                scheme_id=d.get("schemeID", d.get("scheme_id")) or DEFAULT_SCHEME_ID,
                beacon_id=str(beacon_id),
                encoding=PointEncoding.parse(encoding),
            )
        except KeyError as e:
            raise DecodingError("chain info", f"missing field {e.args[0]!r}") from None
        if verify:
            info.verify_hash()
        return info

    @classmethod
    def from_json(cls, text: Union[str, bytes], **kw: Any) -> "ChainInfo":
        try:
            d = json.loads(text)
        except ValueError as e:
            raise DecodingError("chain info", f"invalid JSON: {e}") from None
        return cls.from_dict(d, **kw)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "public_key": to_hex(self.public_key),
            "period": self.period,
            "genesis_time": self.genesis_time,
            "hash": to_hex(self.hash),
            "groupHash": to_hex(self.group_hash),
            "schemeID": self.scheme_id,
            "metadata": {"beaconID": self.beacon_id},
        }

    def to_json(self, *, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=indent is not None)


def _as_int(name: str, v: Any) -> int:
    if isinstance(v, bool):
        raise DecodingError("chain info", f"{name} must be an integer")
    if isinstance(v, int):
        return v
    if isinstance(v, str) and v.strip().lstrip("-").isdigit():
        return int(v)
    raise DecodingError("chain info", f"{name} must be an integer")


# ---------------------------------------------------------------------------
# Chain pinning
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainVerification:
    """
    Out-of-band expectations about a chain: its hash and/or public key.
    Used to pin a mirror to a known network.
    """

    hash: Optional[bytes] = None
    public_key: Optional[bytes] = None

    @classmethod
    def from_hex(cls, hash: Optional[BytesOrHex] = None, public_key: Optional[BytesOrHex] = None) -> "ChainVerification":
        return cls(
            hash=from_hex("hash", hash, CHAIN_HASH_SIZE) if hash else None,
            public_key=from_hex("public_key", public_key) if public_key else None,
        )

    def check(self, info: ChainInfo) -> None:
        """Raise `ChainHashMismatch` when ``info`` differs from a pinned value."""
        if self.hash is not None and info.hash != self.hash:
            raise ChainHashMismatch(expected_hex=to_hex(self.hash), got_hex=info.hash_hex)
        if self.public_key is not None and info.public_key != self.public_key:
            raise ChainHashMismatch(expected_hex=to_hex(self.public_key), got_hex=to_hex(info.public_key))

    def matches(self, info: ChainInfo) -> bool:
        try:
            self.check(info)
        except ChainHashMismatch:
            return False
        return True


# ---------------------------------------------------------------------------
# Round specifications ("1234", "30s", "2h30m", RFC 3339)
# ---------------------------------------------------------------------------

_DURATION_RE = re.compile(r"^(?:\d+[smhd])+$")
_DURATION_PART_RE = re.compile(r"(\d+)([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(text: str) -> _dt.timedelta:
    """Parse '30s', '5m', '2h30m', '1d' style durations."""
    s = text.strip().lower()
    if not _DURATION_RE.match(s):
        raise DecodingError("duration", f"unrecognized duration {text!r}")
    total = sum(int(n) * _UNIT_SECONDS[u] for n, u in _DURATION_PART_RE.findall(s))
    return _dt.timedelta(seconds=total)


def parse_rfc3339(text: str) -> _dt.datetime:
    s = text.strip()
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    try:
        dt = _dt.datetime.fromisoformat(s)
    except ValueError:
        raise DecodingError("timestamp", f"not an RFC 3339 timestamp: {text!r}") from None
    if dt.tzinfo is None:
        raise DecodingError("timestamp", "RFC 3339 timestamp needs a UTC offset")
    return dt


@dataclass(frozen=True)
class RoundTime:
    """
    A round together with its publication time.

    Attributes:
        round: Round number (>= 1).
        absolute: UTC publication time of ``round``.
        relative: ``absolute`` minus the reference "now" (negative for past rounds).
    """

    round: int
    absolute: _dt.datetime
    relative: _dt.timedelta

    @property
    def is_past(self) -> bool:
        return self.relative.total_seconds() <= 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "absolute": self.absolute.isoformat(),
            "relative_seconds": int(self.relative.total_seconds()),
        }


def round_time(chain: ChainInfo, spec: Union[int, str], now: Optional[Instant] = None) -> RoundTime:
    """
    Resolve ``spec`` against ``chain``.

    ``spec`` is a round number, a duration from ``now`` ("30s", "1h") or an
    RFC 3339 instant. Durations and instants select the round current at that
    moment, i.e. ``round_at(instant)``.

    Raises:
        InvalidRound: the spec resolves to round 0 (before genesis).
        DecodingError: unparseable spec.
    """
    now_ts = time.time() if now is None else _unix(now)

    if isinstance(spec, int) and not isinstance(spec, bool):
        rnd = spec
    else:
        s = str(spec).strip()
        if s.isdigit():
            rnd = int(s)
        elif _DURATION_RE.match(s.lower()):
            rnd = chain.round_at(now_ts + parse_duration(s).total_seconds())
        else:
            rnd = chain.round_at(parse_rfc3339(s))

    published = chain.time_of_round(rnd)
    return RoundTime(
        round=rnd,
        absolute=_dt.datetime.fromtimestamp(published, tz=_dt.timezone.utc),
        relative=_dt.timedelta(seconds=published - now_ts),
    )


__all__ = [
    "ChainInfo",
    "ChainVerification",
    "RoundTime",
    "compute_chain_hash",
    "parse_duration",
    "parse_rfc3339",
    "round_time",
]
