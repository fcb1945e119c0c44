"""
Beaconlock constants.

This module centralizes:
- Hash-to-curve domain separation tags used by the drand schemes
- Scheme identifiers and the default beacon id
- Encoded sizes of BLS12-381 points and pairing outputs
- Timelock (IBE) hash tags and limits
- age v1 envelope strings and STREAM parameters

Changing any of these breaks compatibility with published beacons and with
existing ciphertexts.
"""

from __future__ import annotations

# -----------------------------
# Hash-to-curve DSTs
# -----------------------------
# Signatures hashed onto G2 (also reused on G1 by the legacy unchained-on-g1 scheme).
DST_G2: bytes = b"BLS_SIG_BLS12381G2_XMD:SHA-256_SSWU_RO_NUL_"
# RFC 9380 compliant tag for signatures on G1.
DST_G1: bytes = b"BLS_SIG_BLS12381G1_XMD:SHA-256_SSWU_RO_NUL_"

# -----------------------------
# Schemes / chains
# -----------------------------
SCHEME_CHAINED: str = "pedersen-bls-chained"
SCHEME_UNCHAINED: str = "pedersen-bls-unchained"
SCHEME_UNCHAINED_ON_G1: str = "bls-unchained-on-g1"
SCHEME_UNCHAINED_G1_RFC9380: str = "bls-unchained-g1-rfc9380"

DEFAULT_SCHEME_ID: str = SCHEME_CHAINED
DEFAULT_BEACON_ID: str = "default"

# -----------------------------
# Sizes (bytes)
# -----------------------------
G1_SIZE: int = 48
G2_SIZE: int = 96
FP_SIZE: int = 48
GT_SIZE: int = 12 * FP_SIZE          # 576
HASH_SIZE: int = 32                  # SHA-256
CHAIN_HASH_SIZE: int = HASH_SIZE
RANDOMNESS_SIZE: int = HASH_SIZE
ROUND_MAX: int = (1 << 64) - 1       # rounds are uint64 on the wire

# -----------------------------
# Timelock IBE
# -----------------------------
IBE_H2_TAG: bytes = b"IBE-H2"
IBE_H3_TAG: bytes = b"IBE-H3"
IBE_H4_TAG: bytes = b"IBE-H4"
IBE_MAX_MESSAGE_SIZE: int = HASH_SIZE
IBE_H3_MAX_ITERATIONS: int = 65535

# -----------------------------
# age v1 envelope
# -----------------------------
FILE_KEY_SIZE: int = 16
AGE_VERSION_LINE: bytes = b"age-encryption.org/v1"
AGE_STANZA_PREFIX: bytes = b"->"
AGE_FOOTER_PREFIX: bytes = b"---"
AGE_COLUMNS: int = 64
AGE_MAX_HEADER_SIZE: int = 64 * 1024
TLOCK_STANZA_TYPE: str = "tlock"
HEADER_KEY_INFO: bytes = b"header"
PAYLOAD_KEY_INFO: bytes = b"payload"

ARMOR_BEGIN: bytes = b"-----BEGIN AGE ENCRYPTED FILE-----"
ARMOR_END: bytes = b"-----END AGE ENCRYPTED FILE-----"

# STREAM (ChaCha20-Poly1305, 64 KiB chunks)
STREAM_NONCE_SIZE: int = 16
STREAM_CHUNK_SIZE: int = 64 * 1024
STREAM_TAG_SIZE: int = 16
STREAM_KEY_SIZE: int = 32

__all__ = [
    "DST_G2",
    "DST_G1",
    "SCHEME_CHAINED",
    "SCHEME_UNCHAINED",
    "SCHEME_UNCHAINED_ON_G1",
    "SCHEME_UNCHAINED_G1_RFC9380",
    "DEFAULT_SCHEME_ID",
    "DEFAULT_BEACON_ID",
    "G1_SIZE",
    "G2_SIZE",
    "FP_SIZE",
    "GT_SIZE",
    "HASH_SIZE",
    "CHAIN_HASH_SIZE",
    "RANDOMNESS_SIZE",
    "ROUND_MAX",
    "IBE_H2_TAG",
    "IBE_H3_TAG",
    "IBE_H4_TAG",
    "IBE_MAX_MESSAGE_SIZE",
    "IBE_H3_MAX_ITERATIONS",
    "FILE_KEY_SIZE",
    "AGE_VERSION_LINE",
    "AGE_STANZA_PREFIX",
    "AGE_FOOTER_PREFIX",
    "AGE_COLUMNS",
    "AGE_MAX_HEADER_SIZE",
    "TLOCK_STANZA_TYPE",
    "HEADER_KEY_INFO",
    "PAYLOAD_KEY_INFO",
    "ARMOR_BEGIN",
    "ARMOR_END",
    "STREAM_NONCE_SIZE",
    "STREAM_CHUNK_SIZE",
    "STREAM_TAG_SIZE",
    "STREAM_KEY_SIZE",
]
