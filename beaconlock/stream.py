"""
age STREAM payload encryption
=============================

The symmetric half of an envelope. A 16-byte random nonce is written first;
the payload key is derived from the file key with it:

    key = HKDF-SHA256(ikm=file_key, salt=nonce, info="payload", len=32)

The plaintext is cut into 64 KiB chunks, each sealed with ChaCha20-Poly1305
under a 12-byte nonce

    nonce_i = be88(i) || last_flag        (last_flag = 0x01 on the final chunk)

An empty plaintext is a single empty final chunk. Only the final chunk may be
shorter than 64 KiB, and it may only be empty when it is the only chunk.

API
---
- StreamContext: stateful sealer/opener with the chunk counter.
- stream_encrypt(file_key, plaintext, *, nonce=None) -> bytes
- stream_decrypt(file_key, data) -> bytes
"""

from __future__ import annotations

import io
import secrets
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from beaconlock.constants import (
    PAYLOAD_KEY_INFO,
    STREAM_CHUNK_SIZE,
    STREAM_KEY_SIZE,
    STREAM_NONCE_SIZE,
    STREAM_TAG_SIZE,
)
from beaconlock.errors import IntegrityCheckFailed, MalformedEnvelope

Plaintext = Union[bytes, bytearray, memoryview, BinaryIO]

_COUNTER_MAX = (1 << 88) - 1
_ENCRYPTED_CHUNK_SIZE = STREAM_CHUNK_SIZE + STREAM_TAG_SIZE


def payload_key(file_key: bytes, nonce: bytes) -> bytes:
    if len(nonce) != STREAM_NONCE_SIZE:
        raise ValueError(f"stream nonce must be {STREAM_NONCE_SIZE} bytes")
    return HKDF(
        algorithm=hashes.SHA256(),
        length=STREAM_KEY_SIZE,
        salt=bytes(nonce),
        info=PAYLOAD_KEY_INFO,
    ).derive(bytes(file_key))


def chunk_nonce(counter: int, last: bool) -> bytes:
    """be88(counter) || (0x01 if last else 0x00)"""
    if counter < 0 or counter > _COUNTER_MAX:
        raise OverflowError("STREAM chunk counter exhausted")
    return counter.to_bytes(11, "big") + (b"\x01" if last else b"\x00")


@dataclass
class StreamContext:
    """
    Stateful STREAM sealer/opener. Chunks must be processed in order; once a
    final chunk has gone through the context refuses further chunks.
    """

    key: bytes
    _counter: int = 0
    _finished: bool = False
    _aead: ChaCha20Poly1305 = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if len(self.key) != STREAM_KEY_SIZE:
            raise ValueError("STREAM key must be 32 bytes")
        self._aead = ChaCha20Poly1305(bytes(self.key))

    @property
    def counter(self) -> int:
        return self._counter

    def _next_nonce(self, last: bool) -> bytes:
        if self._finished:
            raise MalformedEnvelope("data after final STREAM chunk")
        nonce = chunk_nonce(self._counter, last)
        self._counter += 1
        self._finished = last
        return nonce

    def seal(self, chunk: bytes, *, last: bool) -> bytes:
        if len(chunk) > STREAM_CHUNK_SIZE:
            raise ValueError("STREAM chunk larger than 64 KiB")
        return self._aead.encrypt(self._next_nonce(last), bytes(chunk), None)

    def open(self, chunk: bytes, *, last: bool) -> bytes:
        try:
            return self._aead.decrypt(self._next_nonce(last), bytes(chunk), None)
        except InvalidTag:
            raise IntegrityCheckFailed(f"payload chunk {self._counter - 1} failed authentication") from None


def _read_full(reader: BinaryIO, n: int) -> bytes:
    buf = bytearray()
    while len(buf) < n:
        part = reader.read(n - len(buf))
        if not part:
            break
        buf += part
    return bytes(buf)


def _read_chunks(source: Plaintext) -> Iterator[tuple]:
    """Yield (chunk, is_last) pairs; always at least one (possibly empty) chunk."""
    reader: BinaryIO
    if isinstance(source, (bytes, bytearray, memoryview)):
        reader = io.BytesIO(bytes(source))
    else:
        reader = source
    current = _read_full(reader, STREAM_CHUNK_SIZE)
    while True:
        nxt = _read_full(reader, STREAM_CHUNK_SIZE)
        if not nxt:
            yield current, True
            return
        yield current, False
        current = nxt


def stream_encrypt(file_key: bytes, plaintext: Plaintext, *, nonce: Optional[bytes] = None) -> bytes:
    """Encrypt ``plaintext`` (bytes or a binary reader) into nonce || chunks."""
    nonce = secrets.token_bytes(STREAM_NONCE_SIZE) if nonce is None else bytes(nonce)
    ctx = StreamContext(payload_key(file_key, nonce))
    out = bytearray(nonce)
    for chunk, last in _read_chunks(plaintext):
        out += ctx.seal(chunk, last=last)
    return bytes(out)


def stream_decrypt(file_key: bytes, data: bytes) -> bytes:
    """
    Inverse of `stream_encrypt`.

    Raises:
        MalformedEnvelope: truncated nonce or chunk framing.
        IntegrityCheckFailed: any chunk fails authentication (wrong key,
            tampering, truncation at a chunk boundary, reordering).
    """
    data = bytes(data)
    if len(data) < STREAM_NONCE_SIZE + STREAM_TAG_SIZE:
        raise MalformedEnvelope("payload shorter than nonce and one tag")
    ctx = StreamContext(payload_key(file_key, data[:STREAM_NONCE_SIZE]))
    body = memoryview(data)[STREAM_NONCE_SIZE:]

    out = bytearray()
    pos = 0
    while True:
        chunk = body[pos:pos + _ENCRYPTED_CHUNK_SIZE]
        if len(chunk) < STREAM_TAG_SIZE:
            raise MalformedEnvelope("truncated payload chunk")
        pos += len(chunk)
        last = pos >= len(body)
        plain = ctx.open(chunk, last=last)
        if last:
            if not plain and ctx.counter > 1:
                raise IntegrityCheckFailed("empty final chunk after data")
            out += plain
            return bytes(out)
        out += plain


__all__ = [
    "StreamContext",
    "payload_key",
    "chunk_nonce",
    "stream_encrypt",
    "stream_decrypt",
]
