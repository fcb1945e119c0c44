import dataclasses
import os

import pytest

from beaconlock import timelock
from beaconlock.constants import IBE_MAX_MESSAGE_SIZE, SCHEME_CHAINED, SCHEME_UNCHAINED
from beaconlock.curve import Group, generator, mul
from beaconlock.curve.encoding import encode_point
from beaconlock.errors import (
    ChainHashMismatch,
    DecodingError,
    IntegrityCheckFailed,
    InvalidRound,
    MessageTooLong,
    SchemeMismatch,
)
from beaconlock.tests.conftest import Signer, make_chain
from beaconlock.timelock import TimelockCiphertext


@pytest.mark.parametrize("signer_name", ["g1_signer", "g2_signer"])
def test_roundtrip(request, signer_name):
    signer: Signer = request.getfixturevalue(signer_name)
    msg = b"sixteen byte key"
    ct = timelock.encrypt(signer.chain, 77, msg)
    assert ct.round == 77
    assert ct.chain_hash == signer.chain.hash
    assert len(ct.u) == signer.chain.scheme.public_key_size
    assert len(ct.v) == len(ct.w) == len(msg)
    assert timelock.decrypt(signer.chain, ct, signer.sign(77).signature) == msg


def test_full_size_and_empty_messages(g1_signer):
    sig = g1_signer.sign(3).signature
    for msg in (os.urandom(IBE_MAX_MESSAGE_SIZE), b""):
        ct = timelock.encrypt(g1_signer.chain, 3, msg)
        assert timelock.decrypt(g1_signer.chain, ct, sig) == msg


def test_signature_of_another_round_fails_integrity(g1_signer):
    ct = timelock.encrypt(g1_signer.chain, 10, b"secret")
    with pytest.raises(IntegrityCheckFailed):
        timelock.decrypt(g1_signer.chain, ct, g1_signer.sign(11).signature)


def test_other_chain_is_rejected_before_decryption(g1_signer):
    other = make_chain(SCHEME_UNCHAINED, secret=99)
    ct = timelock.encrypt(other, 10, b"secret")
    with pytest.raises(ChainHashMismatch):
        timelock.decrypt(g1_signer.chain, ct, g1_signer.sign(10).signature)


@pytest.mark.parametrize("part", ["v", "w"])
def test_tampered_ciphertext_fails_integrity(g1_signer, part):
    ct = timelock.encrypt(g1_signer.chain, 12, b"attack at dawn")
    value = bytearray(getattr(ct, part))
    value[0] ^= 0x80
    bad = dataclasses.replace(ct, **{part: bytes(value)})
    with pytest.raises(IntegrityCheckFailed):
        timelock.decrypt(g1_signer.chain, bad, g1_signer.sign(12).signature)


def test_substituted_u_fails_integrity(g1_signer):
    ct = timelock.encrypt(g1_signer.chain, 12, b"attack at dawn")
    other_u = encode_point(Group.G1, mul(generator(Group.G1), 1234567))
    with pytest.raises(IntegrityCheckFailed):
        timelock.decrypt(g1_signer.chain, dataclasses.replace(ct, u=other_u), g1_signer.sign(12).signature)


def test_garbage_u_is_a_decoding_error(g1_signer):
    ct = timelock.encrypt(g1_signer.chain, 12, b"x")
    with pytest.raises(DecodingError):
        timelock.decrypt(g1_signer.chain, dataclasses.replace(ct, u=b"\x00" * 48), g1_signer.sign(12).signature)


def test_message_too_long(g1_signer):
    with pytest.raises(MessageTooLong) as ei:
        timelock.encrypt(g1_signer.chain, 5, b"\x00" * (IBE_MAX_MESSAGE_SIZE + 1))
    assert ei.value.limit == IBE_MAX_MESSAGE_SIZE


def test_round_zero_rejected(g1_signer):
    with pytest.raises(InvalidRound):
        timelock.encrypt(g1_signer.chain, 0, b"x")


def test_chained_network_cannot_timelock():
    with pytest.raises(SchemeMismatch):
        timelock.encrypt(make_chain(SCHEME_CHAINED), 5, b"x")


def test_deterministic_with_fixed_rng(g1_signer):
    rng = lambda n: b"\x42" * n  # noqa: E731
    a = timelock.encrypt(g1_signer.chain, 8, b"same", rng=rng)
    b = timelock.encrypt(g1_signer.chain, 8, b"same", rng=rng)
    assert a == b


def test_body_split_uses_public_key_group(g1_signer, g2_signer):
    for signer in (g1_signer, g2_signer):
        ct = timelock.encrypt(signer.chain, 4, b"0123456789abcdef")
        again = TimelockCiphertext.from_body(ct.round, ct.chain_hash, ct.to_body(), signer.chain.scheme)
        assert again == ct
    with pytest.raises(DecodingError):
        TimelockCiphertext.from_body(4, g1_signer.chain.hash, b"\x00" * 47, g1_signer.chain.scheme)
    with pytest.raises(DecodingError):
        TimelockCiphertext.from_body(4, g1_signer.chain.hash, b"\x00" * 49, g1_signer.chain.scheme)
