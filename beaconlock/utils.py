"""Small byte/text helpers shared across modules."""

from __future__ import annotations

import base64
import binascii
from typing import Optional, Union

from beaconlock.errors import DecodingError

BytesOrHex = Union[bytes, bytearray, memoryview, str]


def from_hex(what: str, value: BytesOrHex, size: Optional[int] = None) -> bytes:
    """
    Accept raw bytes or a hex string (optional 0x prefix) and return bytes.

    Raises:
        DecodingError: not valid hex, or not ``size`` bytes long when given.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        out = bytes(value)
    elif isinstance(value, str):
        s = value.strip()
        if s[:2].lower() == "0x":
            s = s[2:]
        try:
            out = bytes.fromhex(s)
        except ValueError:
            raise DecodingError(what, "invalid hex") from None
    else:
        raise DecodingError(what, f"expected hex string or bytes, got {type(value).__name__}")
    if size is not None and len(out) != size:
        raise DecodingError(what, f"length {len(out)} != {size}")
    return out


def to_hex(b: bytes) -> str:
    return bytes(b).hex()


def b64encode_raw(data: bytes) -> str:
    """Standard base64 alphabet without padding."""
    return base64.b64encode(data).decode("ascii").rstrip("=")


def b64decode_raw(what: str, text: Union[str, bytes]) -> bytes:
    """
    Strict inverse of `b64encode_raw`: rejects padding, non-alphabet
    characters and non-canonical trailing bits.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError:
            raise DecodingError(what, "non-ascii base64") from None
    if "=" in text or "\n" in text or "\r" in text:
        raise DecodingError(what, "unexpected padding or newline in base64")
    if len(text) % 4 == 1:
        raise DecodingError(what, "truncated base64")
    try:
        out = base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
    except (binascii.Error, ValueError):
        raise DecodingError(what, "invalid base64") from None
    if b64encode_raw(out) != text:
        raise DecodingError(what, "non-canonical base64")
    return out


def xor_bytes(a: bytes, b: bytes) -> bytes:
    if len(a) != len(b):
        raise ValueError("xor operands differ in length")
    return bytes(x ^ y for x, y in zip(a, b))


__all__ = ["from_hex", "to_hex", "b64encode_raw", "b64decode_raw", "xor_bytes"]
