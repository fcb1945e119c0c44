"""
BLS12-381 primitives used by beacon verification and timelock encryption.

Submodules:
  - bls12_381      group operations and the pairing (py_ecc backend)
  - encoding       zcash / arkworks point conventions, GT serialization
  - hash_to_curve  RFC 9380 hashing onto G1 / G2
"""

from __future__ import annotations

from .bls12_381 import (
    Group,
    add,
    curve_order,
    eq,
    generator,
    identity,
    in_subgroup,
    is_identity,
    mul,
    neg,
    pair,
    pairing_equal,
)
from .encoding import PointEncoding, decode_point, encode_point, gt_to_bytes, point_size, transcode_point
from .hash_to_curve import hash_to_curve

__all__ = [
    "Group",
    "PointEncoding",
    "add",
    "curve_order",
    "eq",
    "generator",
    "identity",
    "in_subgroup",
    "is_identity",
    "mul",
    "neg",
    "pair",
    "pairing_equal",
    "decode_point",
    "encode_point",
    "gt_to_bytes",
    "point_size",
    "transcode_point",
    "hash_to_curve",
]
