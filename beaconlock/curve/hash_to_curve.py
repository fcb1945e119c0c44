"""
Domain-separated hashing onto G1 / G2 (RFC 9380, expand_message_xmd with
SHA-256, simplified SWU, random-oracle variant).
"""

from __future__ import annotations

import hashlib

from py_ecc.bls.hash_to_curve import hash_to_G1, hash_to_G2

from beaconlock.curve.bls12_381 import Group, Point

_MAX_DST_LEN = 255


def hash_to_curve(group: Group, message: bytes, dst: bytes) -> Point:
    """Map ``message`` to a point of ``group`` under domain separation tag ``dst``."""
    if not dst or len(dst) > _MAX_DST_LEN:
        raise ValueError(f"DST length must be 1..{_MAX_DST_LEN}, got {len(dst)}")
    if group is Group.G1:
        return hash_to_G1(bytes(message), dst, hashlib.sha256)
    return hash_to_G2(bytes(message), dst, hashlib.sha256)


__all__ = ["hash_to_curve"]
