import pytest

from beaconlock.constants import DST_G1, DST_G2, GT_SIZE
from beaconlock.curve import (
    Group,
    PointEncoding,
    decode_point,
    encode_point,
    eq,
    generator,
    gt_to_bytes,
    hash_to_curve,
    identity,
    in_subgroup,
    mul,
    pair,
    pairing_equal,
    point_size,
    transcode_point,
)
from beaconlock.curve.bls12_381 import gt_pow, is_on_curve
from beaconlock.errors import DecodingError

# Compressed G1 generator as published in the zcash serialization notes.
G1_GENERATOR_HEX = (
    "97f1d3a73197d7942695638c4fa9ac0fc3688c4f9774b905a14e3a3f171bac586c55e83ff97a1aeffb3af00adb22c6bb"
)


def test_g1_generator_encoding_matches_reference():
    assert encode_point(Group.G1, generator(Group.G1)).hex() == G1_GENERATOR_HEX


@pytest.mark.parametrize("group", [Group.G1, Group.G2])
def test_encode_decode_roundtrip_zcash(group):
    p = mul(generator(group), 0xDEADBEEF)
    data = encode_point(group, p)
    assert len(data) == point_size(group)
    assert data[0] & 0x80
    assert eq(decode_point(group, data), p)


@pytest.mark.parametrize("group", [Group.G1, Group.G2])
def test_arkworks_and_zcash_decode_to_the_same_point(group):
    p = mul(generator(group), 12345)
    zc = encode_point(group, p, PointEncoding.ZCASH)
    ark = encode_point(group, p, PointEncoding.ARKWORKS)
    assert zc != ark
    assert eq(decode_point(group, ark, PointEncoding.ARKWORKS), decode_point(group, zc))
    assert transcode_point(group, ark, PointEncoding.ARKWORKS, PointEncoding.ZCASH) == zc
    assert transcode_point(group, zc, PointEncoding.ZCASH, PointEncoding.ARKWORKS) == ark


def test_arkworks_rejects_stray_flag_bit():
    ark = bytearray(encode_point(Group.G1, generator(Group.G1), PointEncoding.ARKWORKS))
    ark[-1] |= 0x20
    with pytest.raises(DecodingError):
        decode_point(Group.G1, bytes(ark), PointEncoding.ARKWORKS)


@pytest.mark.parametrize("group", [Group.G1, Group.G2])
def test_wrong_length_rejected(group):
    data = encode_point(group, generator(group))
    with pytest.raises(DecodingError) as ei:
        decode_point(group, data[:-1])
    assert "length" in ei.value.reason
    with pytest.raises(DecodingError):
        decode_point(group.other, data)


def test_uncompressed_flag_rejected():
    data = bytearray(encode_point(Group.G1, generator(Group.G1)))
    data[0] &= 0x7F
    with pytest.raises(DecodingError):
        decode_point(Group.G1, bytes(data))


def test_coordinate_above_modulus_rejected():
    data = bytes([0x9F]) + b"\xff" * 47
    with pytest.raises(DecodingError):
        decode_point(Group.G1, data)


def test_point_outside_subgroup_or_curve_rejected():
    # x = 0 decodes to a point of order 3.
    data = bytes([0x80]) + bytes(47)
    with pytest.raises(DecodingError):
        decode_point(Group.G1, data)


def test_identity_only_when_allowed():
    data = bytes([0xC0]) + bytes(47)
    with pytest.raises(DecodingError):
        decode_point(Group.G1, data)
    p = decode_point(Group.G1, data, allow_identity=True)
    assert eq(p, identity(Group.G1))


def test_unknown_encoding_name():
    with pytest.raises(DecodingError):
        PointEncoding.parse("ietf")
    assert PointEncoding.parse(" Arkworks ") is PointEncoding.ARKWORKS


# ---------- hash to curve ----------


def test_hash_to_curve_is_deterministic_and_domain_separated():
    a = hash_to_curve(Group.G1, b"round", DST_G1)
    b = hash_to_curve(Group.G1, b"round", DST_G1)
    c = hash_to_curve(Group.G1, b"round", DST_G2)
    assert eq(a, b)
    assert not eq(a, c)
    assert is_on_curve(Group.G1, a) and in_subgroup(a)


def test_hash_to_curve_rejects_empty_dst():
    with pytest.raises(ValueError):
        hash_to_curve(Group.G1, b"m", b"")


# ---------- pairing ----------


def test_pairing_equal_is_bilinear():
    g1, g2 = generator(Group.G1), generator(Group.G2)
    assert pairing_equal(mul(g1, 7), g2, g1, mul(g2, 7))
    assert not pairing_equal(mul(g1, 7), g2, g1, mul(g2, 8))


def test_pair_matches_exponentiation_and_serializes():
    g1, g2 = generator(Group.G1), generator(Group.G2)
    base = pair(g1, g2)
    assert pair(mul(g1, 5), g2) == gt_pow(base, 5)

    zc = gt_to_bytes(base, PointEncoding.ZCASH)
    ark = gt_to_bytes(base, PointEncoding.ARKWORKS)
    assert len(zc) == GT_SIZE
    assert ark == zc[::-1]
