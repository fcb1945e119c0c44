"""
Hybrid timelock envelopes in the age v1 format.

Arbitrary-length payloads are encrypted under a random 16-byte file key with
the STREAM construction (`beaconlock.stream`); the file key itself is
timelock-encrypted to a round and carried in a ``tlock`` recipient stanza:

    age-encryption.org/v1
    -> tlock <round> <chain-hash-hex>
    <base64(U || V || W), 64 columns, last line shorter than 64>
    --- <base64(HMAC-SHA256(HKDF(file_key, "", "header"), header up to "---"))>
    <STREAM payload>

Files produced here open with the tlock / age tooling and vice versa.
Optionally the whole thing is wrapped in PEM-style ASCII armor.

API
---
- seal(chain_info, round, plaintext, *, armor=False) -> bytes
- open(chain_info, envelope, signature) -> bytes
- inspect(envelope) -> EnvelopeHeader
- armor(data) / dearmor(data) / is_armored(data)
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import secrets
from dataclasses import dataclass
from typing import List, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from beaconlock import stream, timelock
from beaconlock.chain import ChainInfo
from beaconlock.constants import (
    AGE_COLUMNS,
    AGE_FOOTER_PREFIX,
    AGE_MAX_HEADER_SIZE,
    AGE_STANZA_PREFIX,
    AGE_VERSION_LINE,
    ARMOR_BEGIN,
    ARMOR_END,
    FILE_KEY_SIZE,
    HEADER_KEY_INFO,
    STREAM_NONCE_SIZE,
    TLOCK_STANZA_TYPE,
)
from beaconlock.errors import ChainHashMismatch, DecodingError, IntegrityCheckFailed, MalformedEnvelope
from beaconlock.metrics import METRICS
from beaconlock.stream import Plaintext
from beaconlock.timelock import RandomSource, TimelockCiphertext
from beaconlock.utils import b64decode_raw, b64encode_raw, to_hex

log = logging.getLogger(__name__)

_ARG_RE = re.compile(rb"^[\x21-\x7e]+$")
_HASH_RE = re.compile(r"^[0-9a-f]{64}$")
_MAC_SIZE = 32


@dataclass(frozen=True)
class Stanza:
    type: str
    args: Tuple[str, ...]
    body: bytes

    def encode(self) -> bytes:
        line = b" ".join([AGE_STANZA_PREFIX, self.type.encode("ascii")] + [a.encode("ascii") for a in self.args])
        b64 = b64encode_raw(self.body).encode("ascii")
        lines = [b64[i:i + AGE_COLUMNS] for i in range(0, len(b64), AGE_COLUMNS)]
        if not lines or len(lines[-1]) == AGE_COLUMNS:
            lines.append(b"")
        return line + b"\n" + b"\n".join(lines) + b"\n"


@dataclass(frozen=True)
class EnvelopeHeader:
    """
    Parsed envelope header.

    Attributes:
        round / chain_hash: target of the (first) tlock stanza.
        stanzas: every recipient stanza in header order.
        mac: header MAC as stored.
        mac_input: header bytes the MAC covers.
        payload_offset: where the STREAM payload starts in the dearmored bytes.
    """

    round: int
    chain_hash: bytes
    stanzas: Tuple[Stanza, ...]
    mac: bytes
    mac_input: bytes
    payload_offset: int

    @property
    def tlock_stanza(self) -> Stanza:
        return next(s for s in self.stanzas if s.type == TLOCK_STANZA_TYPE)

    def to_dict(self) -> dict:
        return {"round": self.round, "chain_hash": to_hex(self.chain_hash)}


# ---------------------------------------------------------------------------
# Armor
# ---------------------------------------------------------------------------


def is_armored(data: bytes) -> bool:
    return bytes(data).lstrip().startswith(ARMOR_BEGIN)


def armor(data: bytes) -> bytes:
    b64 = base64.b64encode(bytes(data))
    lines = [b64[i:i + AGE_COLUMNS] for i in range(0, len(b64), AGE_COLUMNS)]
    return b"\n".join([ARMOR_BEGIN, *lines, ARMOR_END]) + b"\n"


_armor = armor


def dearmor(data: bytes) -> bytes:
    text = bytes(data).strip()
    if not text.startswith(ARMOR_BEGIN) or not text.endswith(ARMOR_END):
        raise MalformedEnvelope("missing armor begin/end lines")
    lines = text[len(ARMOR_BEGIN):-len(ARMOR_END)].replace(b"\r\n", b"\n").strip().split(b"\n")
    if any(len(ln) > AGE_COLUMNS for ln in lines):
        raise MalformedEnvelope("armored line longer than 64 columns")
    try:
        return base64.b64decode(b"".join(lines), validate=True)
    except (binascii.Error, ValueError):
        raise MalformedEnvelope("invalid base64 in armor") from None


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------


def _header_key(file_key: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=b"", info=HEADER_KEY_INFO).derive(file_key)


def _header_mac(file_key: bytes, mac_input: bytes) -> bytes:
    h = hmac.HMAC(_header_key(file_key), hashes.SHA256())
    h.update(mac_input)
    return h.finalize()


def _verify_header_mac(file_key: bytes, mac_input: bytes, mac: bytes) -> None:
    h = hmac.HMAC(_header_key(file_key), hashes.SHA256())
    h.update(mac_input)
    try:
        h.verify(mac)
    except InvalidSignature:
        raise IntegrityCheckFailed("header MAC mismatch") from None


def _next_line(data: bytes, pos: int) -> Tuple[bytes, int]:
    end = data.find(b"\n", pos)
    if end < 0:
        raise MalformedEnvelope("unexpected end of header")
    if end > AGE_MAX_HEADER_SIZE:
        raise MalformedEnvelope("header section too large")
    return data[pos:end], end + 1


def _parse_stanza(line: bytes, data: bytes, pos: int) -> Tuple[Stanza, int]:
    parts = line.split(b" ")
    if len(parts) < 2 or any(not _ARG_RE.match(p) for p in parts[1:]):
        raise MalformedEnvelope("malformed stanza line")
    body_b64 = bytearray()
    while True:
        body_line, pos = _next_line(data, pos)
        if len(body_line) > AGE_COLUMNS:
            raise MalformedEnvelope("stanza body line longer than 64 columns")
        body_b64 += body_line
        if len(body_line) < AGE_COLUMNS:
            break
    try:
        body = b64decode_raw("stanza body", bytes(body_b64))
    except DecodingError as e:
        raise MalformedEnvelope(f"stanza body: {e.reason}") from None
    args = tuple(p.decode("ascii") for p in parts[2:])
    return Stanza(type=parts[1].decode("ascii"), args=args, body=body), pos


def _parse_tlock_args(stanza: Stanza) -> Tuple[int, bytes]:
    if len(stanza.args) != 2:
        raise MalformedEnvelope("tlock stanza needs <round> <chain-hash>")
    round_s, hash_s = stanza.args
    if not round_s.isdigit() or round_s.startswith("0"):
        raise MalformedEnvelope(f"invalid tlock round {round_s!r}")
    if not _HASH_RE.match(hash_s):
        raise MalformedEnvelope(f"invalid tlock chain hash {hash_s!r}")
    return int(round_s), bytes.fromhex(hash_s)


def parse_header(data: bytes) -> EnvelopeHeader:
    """
    Parse the age header of a binary (already dearmored) envelope.

    Raises:
        MalformedEnvelope: bad version line, stanza, base64, footer, or no
            tlock stanza.
    """
    data = bytes(data)
    line, pos = _next_line(data, 0)
    if line != AGE_VERSION_LINE:
        raise MalformedEnvelope("not an age v1 file")

    stanzas: List[Stanza] = []
    while True:
        line_start = pos
        line, pos = _next_line(data, pos)
        if line.startswith(AGE_STANZA_PREFIX + b" "):
            stanza, pos = _parse_stanza(line, data, pos)
            stanzas.append(stanza)
        elif line.startswith(AGE_FOOTER_PREFIX + b" "):
            try:
                mac = b64decode_raw("header MAC", line[len(AGE_FOOTER_PREFIX) + 1:])
            except DecodingError:
                raise MalformedEnvelope("header MAC is not valid base64") from None
            if len(mac) != _MAC_SIZE:
                raise MalformedEnvelope("header MAC must be 32 bytes")
            mac_input = data[:line_start + len(AGE_FOOTER_PREFIX)]
            break
        else:
            raise MalformedEnvelope("unexpected header line")

    tlock_stanzas = [s for s in stanzas if s.type == TLOCK_STANZA_TYPE]
    if not tlock_stanzas:
        raise MalformedEnvelope("no tlock stanza")
    rnd, chain_hash = _parse_tlock_args(tlock_stanzas[0])
    return EnvelopeHeader(
        round=rnd,
        chain_hash=chain_hash,
        stanzas=tuple(stanzas),
        mac=mac,
        mac_input=mac_input,
        payload_offset=pos,
    )


def inspect(envelope: bytes) -> EnvelopeHeader:
    """Read the target round and chain hash without decrypting."""
    data = dearmor(envelope) if is_armored(envelope) else bytes(envelope)
    return parse_header(data)


# ---------------------------------------------------------------------------
# Seal / open
# ---------------------------------------------------------------------------


def seal(
    chain_info: ChainInfo,
    round: int,
    plaintext: Plaintext,
    *,
    armor: bool = False,
    rng: Optional[RandomSource] = None,
) -> bytes:
    """
    Timelock ``plaintext`` to ``round`` of ``chain_info``.

    Raises:
        InvalidRound, SchemeMismatch (chained network), UnknownScheme
    """
    rng = rng or secrets.token_bytes
    file_key = rng(FILE_KEY_SIZE)
    ct = timelock.encrypt(chain_info, round, file_key, rng=rng)

    stanza = Stanza(
        type=TLOCK_STANZA_TYPE,
        args=(str(ct.round), to_hex(ct.chain_hash)),
        body=ct.to_body(),
    )
    mac_input = AGE_VERSION_LINE + b"\n" + stanza.encode() + AGE_FOOTER_PREFIX
    mac = _header_mac(file_key, mac_input)
    header = mac_input + b" " + b64encode_raw(mac).encode("ascii") + b"\n"

    out = header + stream.stream_encrypt(file_key, plaintext, nonce=rng(STREAM_NONCE_SIZE))
    METRICS.record_timelock("seal", "ok")
    log.info("sealed envelope", extra={"round": round, "chain": chain_info.hash_hex, "armor": armor})
    return _armor(out) if armor else out


def open(chain_info: ChainInfo, envelope: bytes, signature: bytes) -> bytes:
    """
    Decrypt an envelope with the published signature of its target round.

    Raises:
        MalformedEnvelope: structural problems.
        ChainHashMismatch: envelope targets another chain.
        IntegrityCheckFailed: wrong signature, header MAC or payload tampering.
    """
    try:
        data = dearmor(envelope) if is_armored(envelope) else bytes(envelope)
        header = parse_header(data)
        if header.chain_hash != chain_info.hash:
            raise ChainHashMismatch(expected_hex=to_hex(header.chain_hash), got_hex=chain_info.hash_hex)
        try:
            ct = TimelockCiphertext.from_body(
                header.round, header.chain_hash, header.tlock_stanza.body, chain_info.scheme
            )
        except DecodingError as e:
            raise MalformedEnvelope(f"tlock stanza: {e.reason}") from None

        file_key = timelock.decrypt(chain_info, ct, signature)
        if len(file_key) != FILE_KEY_SIZE:
            raise MalformedEnvelope("wrapped file key must be 16 bytes")
        _verify_header_mac(file_key, header.mac_input, header.mac)
        plaintext = stream.stream_decrypt(file_key, data[header.payload_offset:])
    except MalformedEnvelope:
        METRICS.record_timelock("open", "malformed")
        raise
    except IntegrityCheckFailed:
        METRICS.record_timelock("open", "integrity_failed")
        raise
    METRICS.record_timelock("open", "ok")
    return plaintext


__all__ = [
    "Stanza",
    "EnvelopeHeader",
    "armor",
    "dearmor",
    "is_armored",
    "parse_header",
    "inspect",
    "seal",
    "open",
]
