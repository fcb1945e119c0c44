"""
beaconlock.schemes
==================

Canonical registry of the beacon signature schemes this client understands.

A scheme fixes which group carries the chain public key and which carries the
round signatures, how the signed message is derived from the round (and, for
chained schemes, the previous signature), the hash-to-curve domain separation
tag, and the byte convention its points are serialized with.

The set is closed: an unknown identifier is a hard failure (`UnknownScheme`),
never a silent fallback to a default.

Registry
--------
- pedersen-bls-chained      pk G1, sig G2, SHA-256(prev_sig || round)
- pedersen-bls-unchained    pk G1, sig G2, SHA-256(round)
- bls-unchained-on-g1       pk G2, sig G1, SHA-256(round), legacy G2 tag on G1
- bls-unchained-g1-rfc9380  pk G2, sig G1, SHA-256(round), RFC 9380 G1 tag
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Dict, Iterable, Optional, Union

from beaconlock.constants import (
    DST_G1,
    DST_G2,
    ROUND_MAX,
    SCHEME_CHAINED,
    SCHEME_UNCHAINED,
    SCHEME_UNCHAINED_G1_RFC9380,
    SCHEME_UNCHAINED_ON_G1,
)
from beaconlock.curve import Group, PointEncoding, decode_point, encode_point, hash_to_curve, point_size
from beaconlock.curve.bls12_381 import Point
from beaconlock.errors import DecodingError, InvalidRound, MalformedSignature, SchemeMismatch, UnknownScheme


@dataclass(frozen=True)
class Scheme:
    scheme_id: str
    public_key_group: Group
    signature_group: Group
    chained: bool
    dst: bytes
    notes: str = ""
    encoding: PointEncoding = PointEncoding.ZCASH

    @property
    def public_key_size(self) -> int:
        return point_size(self.public_key_group)

    @property
    def signature_size(self) -> int:
        return point_size(self.signature_group)

    @property
    def supports_timelock(self) -> bool:
        """Only unchained rounds have signatures predictable from the round alone."""
        return not self.chained

    def with_encoding(self, encoding: Union[str, PointEncoding]) -> "Scheme":
        return replace(self, encoding=PointEncoding.parse(encoding))

    # ----- messages ---------------------------------------------------------

    def signing_message(self, round: int, previous_signature: Optional[bytes] = None) -> bytes:
        """
        Digest that the network signs for ``round``.

        Raises:
            SchemeMismatch: chained scheme without a previous signature, or an
                unchained scheme given one.
            InvalidRound: round outside 0..2^64-1.
        """
        if not 0 <= round <= ROUND_MAX:
            raise InvalidRound(round, "round must fit in 64 bits")
        h = hashlib.sha256()
        if self.chained:
            if previous_signature is None:
                raise SchemeMismatch(self.scheme_id, "chained scheme requires previous_signature")
            h.update(bytes(previous_signature))
        elif previous_signature is not None:
            raise SchemeMismatch(self.scheme_id, "unchained scheme does not take previous_signature")
        h.update(int(round).to_bytes(8, "big"))
        return h.digest()

    def message_point(self, message: bytes) -> Point:
        return hash_to_curve(self.signature_group, message, self.dst)

    def identity_point(self, round: int, previous_signature: Optional[bytes] = None) -> Point:
        """Hash of the round's message onto the signature group (the IBE identity)."""
        return self.message_point(self.signing_message(round, previous_signature))

    # ----- points -----------------------------------------------------------

    def decode_public_key(self, data: bytes) -> Point:
        return _decode_public_key(self.public_key_group, bytes(data), self.encoding)

    def decode_signature(self, data: bytes, *, round: int = 0) -> Point:
        """Decode a round signature; failures surface as `MalformedSignature`."""
        try:
            return decode_point(self.signature_group, data, self.encoding)
        except DecodingError as e:
            raise MalformedSignature(round, e.reason) from e

    def encode_signature(self, point: Point, encoding: Optional[PointEncoding] = None) -> bytes:
        return encode_point(self.signature_group, point, encoding or self.encoding)

    def canonical_bytes(self, group: Group, data: bytes) -> bytes:
        """zcash bytes of a point given in this scheme's convention."""
        if self.encoding is PointEncoding.ZCASH:
            return bytes(data)
        return encode_point(group, decode_point(group, data, self.encoding), PointEncoding.ZCASH)


@lru_cache(maxsize=64)
def _decode_public_key(group: Group, data: bytes, encoding: PointEncoding) -> Point:
    # Chain keys are few and long-lived; the subgroup check is not cheap.
    return decode_point(group, data, encoding)


# ---------------------------
# Registry
# ---------------------------

def _mk(scheme_id: str, pk: Group, chained: bool, dst: bytes, notes: str) -> Scheme:
    return Scheme(
        scheme_id=scheme_id,
        public_key_group=pk,
        signature_group=pk.other,
        chained=chained,
        dst=dst,
        notes=notes,
    )


SCHEMES: Dict[str, Scheme] = {
    s.scheme_id: s
    for s in (
        _mk(SCHEME_CHAINED, Group.G1, True, DST_G2, "original drand mainnet scheme"),
        _mk(SCHEME_UNCHAINED, Group.G1, False, DST_G2, "timelock-capable, signatures on G2"),
        _mk(SCHEME_UNCHAINED_ON_G1, Group.G2, False, DST_G2, "short signatures, non-RFC DST on G1"),
        _mk(SCHEME_UNCHAINED_G1_RFC9380, Group.G2, False, DST_G1, "short signatures, RFC 9380 DST"),
    )
}


def list_schemes() -> Iterable[str]:
    return tuple(SCHEMES)


def is_known_scheme(scheme_id: str) -> bool:
    return scheme_id in SCHEMES


def scheme_for(scheme_id: str, *, encoding: Union[str, PointEncoding, None] = None) -> Scheme:
    """
    Resolve a scheme identifier.

    Raises:
        UnknownScheme: the identifier is not in the registry.
    """
    try:
        scheme = SCHEMES[scheme_id]
    except (KeyError, TypeError):
        raise UnknownScheme(str(scheme_id)) from None
    if encoding is not None:
        scheme = scheme.with_encoding(encoding)
    return scheme


__all__ = [
    "Scheme",
    "SCHEMES",
    "list_schemes",
    "is_known_scheme",
    "scheme_for",
]
