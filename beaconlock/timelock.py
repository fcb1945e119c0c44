"""
Timelock encryption: identity-based encryption to a future round.

The identity of round ``r`` is the scheme's hash of the round message onto the
signature group; the network's signature for ``r`` is exactly the IBE private
key for that identity. Until the round is published nobody (short of a
threshold of operators) can decrypt.

Construction (Boneh-Franklin with the Fujisaki-Okamoto transform, as used by
the tlock tools), for a public key ``P`` on group A and identities on group B:

    Qid   = identity_point(round)
    Gid   = e(P, Qid)                     (argument order swaps when P is on G2)
    sigma <- random, len(sigma) == len(m)
    r     = H3(sigma, m)                  (scalar, rejection-sampled below the group order)
    U     = r * g_A
    V     = sigma XOR H2(Gid^r)
    W     = m XOR H4(sigma)

Decryption recomputes Gid^r as e(U, sig), unmasks sigma then m, and rejects
unless r * g_A == U.

Messages are limited to 32 bytes; larger payloads go through
`beaconlock.envelope`.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from beaconlock.chain import ChainInfo
from beaconlock.constants import (
    CHAIN_HASH_SIZE,
    IBE_H2_TAG,
    IBE_H3_MAX_ITERATIONS,
    IBE_H3_TAG,
    IBE_H4_TAG,
    IBE_MAX_MESSAGE_SIZE,
)
from beaconlock.curve import (
    Group,
    PointEncoding,
    curve_order,
    decode_point,
    encode_point,
    eq,
    generator,
    gt_to_bytes,
    mul,
    pair,
    point_size,
)
from beaconlock.curve.bls12_381 import GTElement, Point, gt_pow
from beaconlock.errors import (
    ChainHashMismatch,
    DecodingError,
    IntegrityCheckFailed,
    InvalidRound,
    MessageTooLong,
    SchemeMismatch,
)
from beaconlock.metrics import METRICS
from beaconlock.schemes import Scheme
from beaconlock.utils import to_hex, xor_bytes

log = logging.getLogger(__name__)

RandomSource = Callable[[int], bytes]


@dataclass(frozen=True)
class TimelockCiphertext:
    """
    Output of `encrypt`.

    Attributes:
        round: Target round.
        chain_hash: Hash of the chain whose signature for ``round`` decrypts.
        u: Encoded ephemeral point r*g in the public-key group.
        v: Masked sigma.
        w: Masked message.
    """

    round: int
    chain_hash: bytes
    u: bytes
    v: bytes
    w: bytes

    def __post_init__(self) -> None:
        if len(self.chain_hash) != CHAIN_HASH_SIZE:
            raise DecodingError("ciphertext", "chain hash must be 32 bytes")
        if len(self.v) != len(self.w):
            raise DecodingError("ciphertext", "V and W differ in length")
        if len(self.w) > IBE_MAX_MESSAGE_SIZE:
            raise DecodingError("ciphertext", f"message part longer than {IBE_MAX_MESSAGE_SIZE}")

    def to_body(self) -> bytes:
        """U || V || W, the stanza body used inside envelopes."""
        return bytes(self.u) + bytes(self.v) + bytes(self.w)

    @classmethod
    def from_body(cls, round: int, chain_hash: bytes, body: bytes, scheme: Scheme) -> "TimelockCiphertext":
        """Split a stanza body using the scheme's public-key group point size."""
        n = point_size(scheme.public_key_group)
        rest = len(body) - n
        if rest < 0 or rest % 2:
            raise DecodingError("ciphertext", f"body length {len(body)} does not fit U||V||W")
        half = rest // 2
        return cls(
            round=round,
            chain_hash=bytes(chain_hash),
            u=bytes(body[:n]),
            v=bytes(body[n:n + half]),
            w=bytes(body[n + half:]),
        )


# ---------------------------------------------------------------------------
# Hashes
# ---------------------------------------------------------------------------


def _h2(gt: GTElement, n: int, encoding: PointEncoding) -> bytes:
    return hashlib.sha256(IBE_H2_TAG + gt_to_bytes(gt, encoding)).digest()[:n]


def _h3(sigma: bytes, message: bytes) -> int:
    """
    Derive the FO scalar from (sigma, m): SHA-256 based rejection sampling
    with a little-endian 16-bit counter, top bit cleared.
    """
    order = curve_order()
    base = hashlib.sha256(IBE_H3_TAG + sigma + message).digest()
    for i in range(1, IBE_H3_MAX_ITERATIONS + 1):
        h = bytearray(hashlib.sha256(i.to_bytes(2, "little") + base).digest())
        h[0] >>= 1
        r = int.from_bytes(h, "big")
        if r < order:
            return r
    raise IntegrityCheckFailed("H3 rejection sampling exhausted")


def _h4(sigma: bytes, n: int) -> bytes:
    return hashlib.sha256(IBE_H4_TAG + sigma).digest()[:n]


def _pair_oriented(scheme: Scheme, pk_side: Point, id_side: Point) -> GTElement:
    """e(pk_side, id_side) with arguments ordered (G1, G2) for the scheme."""
    if scheme.public_key_group is Group.G1:
        return pair(pk_side, id_side)
    return pair(id_side, pk_side)


# ---------------------------------------------------------------------------
# Encrypt / decrypt
# ---------------------------------------------------------------------------


def encrypt(
    chain_info: ChainInfo,
    round: int,
    message: bytes,
    *,
    rng: Optional[RandomSource] = None,
) -> TimelockCiphertext:
    """
    Encrypt ``message`` (at most 32 bytes) so that the signature of ``round``
    on ``chain_info`` decrypts it.

    Raises:
        MessageTooLong, InvalidRound, SchemeMismatch (chained networks),
        UnknownScheme, DecodingError (bad chain public key)
    """
    message = bytes(message)
    if len(message) > IBE_MAX_MESSAGE_SIZE:
        raise MessageTooLong(len(message), IBE_MAX_MESSAGE_SIZE)
    if round < 1:
        raise InvalidRound(round)
    scheme = chain_info.scheme
    if not scheme.supports_timelock:
        raise SchemeMismatch(scheme.scheme_id, "timelock needs an unchained scheme")

    rng = rng or secrets.token_bytes
    master = scheme.decode_public_key(chain_info.public_key)
    qid = scheme.identity_point(round)
    gid = _pair_oriented(scheme, master, qid)

    sigma = rng(len(message))
    if len(sigma) != len(message):
        raise ValueError("random source returned the wrong number of bytes")
    r = _h3(sigma, message)
    u = mul(generator(scheme.public_key_group), r)
    v = xor_bytes(sigma, _h2(gt_pow(gid, r), len(message), scheme.encoding))
    w = xor_bytes(message, _h4(sigma, len(message)))

    METRICS.record_timelock("encrypt", "ok")
    log.debug("timelock encrypt", extra={"round": round, "chain": chain_info.hash_hex})
    return TimelockCiphertext(
        round=round,
        chain_hash=chain_info.hash,
        u=encode_point(scheme.public_key_group, u, scheme.encoding),
        v=v,
        w=w,
    )


def decrypt(chain_info: ChainInfo, ciphertext: TimelockCiphertext, signature: bytes) -> bytes:
    """
    Recover the message with the round signature (the IBE private key).

    The signature is not separately verified: a signature for any other round
    or chain fails the re-encryption check.

    Raises:
        ChainHashMismatch: ciphertext targets a different chain.
        IntegrityCheckFailed: wrong signature or tampered ciphertext.
        DecodingError: signature or U do not decode.
    """
    if ciphertext.chain_hash != chain_info.hash:
        raise ChainHashMismatch(expected_hex=to_hex(ciphertext.chain_hash), got_hex=chain_info.hash_hex)
    scheme = chain_info.scheme
    private = scheme.decode_signature(signature, round=ciphertext.round)
    try:
        u = decode_point(scheme.public_key_group, ciphertext.u, scheme.encoding)
    except DecodingError:
        METRICS.record_timelock("decrypt", "malformed")
        raise

    n = len(ciphertext.w)
    r_gid = _pair_oriented(scheme, u, private)
    sigma = xor_bytes(ciphertext.v, _h2(r_gid, n, scheme.encoding))
    message = xor_bytes(ciphertext.w, _h4(sigma, n))

    r = _h3(sigma, message)
    if not eq(mul(generator(scheme.public_key_group), r), u):
        METRICS.record_timelock("decrypt", "integrity_failed")
        raise IntegrityCheckFailed("re-encryption check failed")

    METRICS.record_timelock("decrypt", "ok")
    return message


__all__ = ["TimelockCiphertext", "encrypt", "decrypt"]
