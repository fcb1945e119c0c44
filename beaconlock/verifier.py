"""
Beacon verification.

A beacon is accepted only if every step passes, in order:

  1. the chain's scheme is known                      (UnknownScheme)
  2. the signed message fits the scheme's shape        (SchemeMismatch)
  3. the message hashes onto the signature group
  4. signature and public key decode                   (MalformedSignature / DecodingError)
  5. the pairing check holds                           (SignatureInvalid)
       signature on G2:  e(g1, sig) == e(pk, H(m))
       signature on G1:  e(sig, g2) == e(H(m), pk)
  6. randomness == SHA-256(signature)                  (RandomnessMismatch)

There is no partial acceptance and nothing is cached between calls.
"""

from __future__ import annotations

import hmac
import logging

from beaconlock.beacon import Beacon
from beaconlock.chain import ChainInfo
from beaconlock.curve import Group, generator, pairing_equal
from beaconlock.errors import (
    DecodingError,
    RandomnessMismatch,
    SchemeMismatch,
    SignatureInvalid,
    UnknownScheme,
    VerificationError,
)
from beaconlock.metrics import METRICS
from beaconlock.utils import to_hex

log = logging.getLogger(__name__)


def _check(chain_info: ChainInfo, beacon: Beacon) -> None:
    scheme = chain_info.scheme
    message = scheme.signing_message(beacon.round, beacon.previous_signature)
    hm = scheme.message_point(message)
    sig = scheme.decode_signature(beacon.signature, round=beacon.round)
    pk = scheme.decode_public_key(chain_info.public_key)

    with METRICS.verify_timer():
        if scheme.signature_group is Group.G2:
            ok = pairing_equal(generator(Group.G1), sig, pk, hm)
        else:
            ok = pairing_equal(sig, generator(Group.G2), hm, pk)
    if not ok:
        raise SignatureInvalid(beacon.round)

    expected = beacon.expected_randomness()
    if not hmac.compare_digest(expected, bytes(beacon.randomness)):
        raise RandomnessMismatch(
            round=beacon.round,
            expected_hex=to_hex(expected),
            got_hex=to_hex(beacon.randomness),
        )


def verify(chain_info: ChainInfo, beacon: Beacon) -> None:
    """
    Verify ``beacon`` against ``chain_info``; returns None or raises.

    Raises:
        UnknownScheme, SchemeMismatch, DecodingError, SignatureInvalid,
        RandomnessMismatch
    """
    try:
        _check(chain_info, beacon)
    except SignatureInvalid:
        # MalformedSignature is a SignatureInvalid too; count it as such.
        METRICS.record_verification("signature_invalid")
        log.warning("beacon rejected", extra={"round": beacon.round, "reason": "signature"})
        raise
    except RandomnessMismatch:
        METRICS.record_verification("randomness_mismatch")
        log.warning("beacon rejected", extra={"round": beacon.round, "reason": "randomness"})
        raise
    except SchemeMismatch:
        METRICS.record_verification("scheme_mismatch")
        raise
    except UnknownScheme:
        METRICS.record_verification("unknown_scheme")
        raise
    except DecodingError:
        METRICS.record_verification("decoding_error")
        raise
    METRICS.record_verification("ok")
    log.debug("beacon verified", extra={"round": beacon.round, "chain": chain_info.hash_hex})


def is_valid(chain_info: ChainInfo, beacon: Beacon) -> bool:
    """
    Boolean form of `verify`: False for rejected beacons. Configuration
    problems (unknown scheme, wrong beacon shape) still raise.
    """
    try:
        verify(chain_info, beacon)
    except (VerificationError, DecodingError):
        return False
    return True


__all__ = ["verify", "is_valid"]
