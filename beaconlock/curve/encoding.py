"""
Point and pairing-output encodings.

Two byte conventions are in circulation for compressed BLS12-381 points:

* ``zcash`` (what drand publishes): big-endian x coordinate, flag bits in
  the three most significant bits of the first byte: 0x80 compressed,
  0x40 point at infinity, 0x20 y is the lexicographically larger root.
  G2 serializes x.c1 before x.c0.
* ``arkworks``: little-endian x coordinate (c0 before c1 on G2), flags in the
  two most significant bits of the *last* byte: 0x80 y is the larger root,
  0x40 point at infinity. There is no compression bit.

An arkworks encoding is the byte-reversal of the zcash one with the flags
remapped, which is how it is decoded here.

Decoding always rejects wrong lengths, malformed flags, coordinates that are
not canonical field elements, points off the curve and points outside the
prime-order subgroup.
"""

from __future__ import annotations

import enum
from typing import Union

from py_ecc.bls.point_compression import (
    compress_G1,
    compress_G2,
    decompress_G1,
    decompress_G2,
)

from beaconlock.constants import FP_SIZE, G1_SIZE, G2_SIZE
from beaconlock.curve.bls12_381 import (
    GTElement,
    Group,
    Point,
    gt_coefficients,
    in_subgroup,
    is_identity,
)
from beaconlock.errors import DecodingError

BytesLike = Union[bytes, bytearray, memoryview]

_ZC_COMPRESSED = 0x80
_ZC_INFINITY = 0x40
_ZC_SIGN = 0x20
_AW_SIGN = 0x80
_AW_INFINITY = 0x40


class PointEncoding(str, enum.Enum):
    ZCASH = "zcash"
    ARKWORKS = "arkworks"

    @classmethod
    def parse(cls, value: Union[str, "PointEncoding"]) -> "PointEncoding":
        if isinstance(value, PointEncoding):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise DecodingError("point encoding", f"unknown convention {value!r}") from None


def point_size(group: Group) -> int:
    return G1_SIZE if group is Group.G1 else G2_SIZE


# -------------------------
# zcash <-> arkworks
# -------------------------

def _arkworks_to_zcash(data: bytes, group: Group) -> bytes:
    out = bytearray(data[::-1])
    flags = out[0] & 0xC0
    if out[0] & _ZC_SIGN:
        raise DecodingError(f"{group.value} point", "non-canonical arkworks encoding")
    out[0] = (out[0] & 0x1F) | _ZC_COMPRESSED
    if flags & _AW_INFINITY:
        out[0] |= _ZC_INFINITY
    if flags & _AW_SIGN:
        out[0] |= _ZC_SIGN
    return bytes(out)


def _zcash_to_arkworks(data: bytes) -> bytes:
    flags = data[0]
    out = bytearray(data)
    out[0] &= 0x1F
    if flags & _ZC_INFINITY:
        out[0] |= _AW_INFINITY
    if flags & _ZC_SIGN:
        out[0] |= _AW_SIGN
    return bytes(out[::-1])


# -------------------------
# Encode / decode
# -------------------------

def encode_point(group: Group, point: Point, encoding: PointEncoding = PointEncoding.ZCASH) -> bytes:
    """Serialize a point in compressed form."""
    if group is Group.G1:
        data = int(compress_G1(point)).to_bytes(G1_SIZE, "big")
    else:
        z1, z2 = compress_G2(point)
        data = int(z1).to_bytes(FP_SIZE, "big") + int(z2).to_bytes(FP_SIZE, "big")
    if PointEncoding.parse(encoding) is PointEncoding.ARKWORKS:
        return _zcash_to_arkworks(data)
    return data


def decode_point(
    group: Group,
    data: BytesLike,
    encoding: PointEncoding = PointEncoding.ZCASH,
    *,
    allow_identity: bool = False,
) -> Point:
    """
    Parse a compressed point of ``group``.

    Raises:
        DecodingError: on any malformed, off-curve or out-of-subgroup input,
            and for the identity unless ``allow_identity`` is set.
    """
    what = f"{group.value} point"
    raw = bytes(data)
    if len(raw) != point_size(group):
        raise DecodingError(what, f"length {len(raw)} != {point_size(group)}")
    if PointEncoding.parse(encoding) is PointEncoding.ARKWORKS:
        raw = _arkworks_to_zcash(raw, group)

    if not raw[0] & _ZC_COMPRESSED:
        raise DecodingError(what, "uncompressed encoding")
    try:
        if group is Group.G1:
            point = decompress_G1(int.from_bytes(raw, "big"))
        else:
            point = decompress_G2(
                (int.from_bytes(raw[:FP_SIZE], "big"), int.from_bytes(raw[FP_SIZE:], "big"))
            )
    except (ValueError, AssertionError) as e:
        raise DecodingError(what, str(e) or "invalid encoding") from None

    if is_identity(point):
        if not allow_identity:
            raise DecodingError(what, "point at infinity")
        return point
    if not in_subgroup(point):
        raise DecodingError(what, "not in prime-order subgroup")
    return point


def transcode_point(group: Group, data: BytesLike, src: PointEncoding, dst: PointEncoding) -> bytes:
    """Re-serialize a compressed point from one convention to the other (validated)."""
    src, dst = PointEncoding.parse(src), PointEncoding.parse(dst)
    point = decode_point(group, data, src, allow_identity=True)
    return encode_point(group, point, dst)


# -------------------------
# Pairing outputs
# -------------------------

def gt_to_bytes(value: GTElement, encoding: PointEncoding = PointEncoding.ZCASH) -> bytes:
    """
    Serialize a pairing output to 576 bytes.

    zcash: big-endian field elements, highest tower coefficients first
    (c1 before c0, a2..a0, imaginary before real). arkworks is the exact
    byte-reversal (little-endian, lowest coefficients first).
    """
    out = bytearray()
    for c in reversed(gt_coefficients(value)):
        for re_, im in reversed(c):
            out += im.to_bytes(FP_SIZE, "big")
            out += re_.to_bytes(FP_SIZE, "big")
    if PointEncoding.parse(encoding) is PointEncoding.ARKWORKS:
        out.reverse()
    return bytes(out)


__all__ = [
    "PointEncoding",
    "point_size",
    "encode_point",
    "decode_point",
    "transcode_point",
    "gt_to_bytes",
]
