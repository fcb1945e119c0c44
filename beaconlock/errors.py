"""
Beaconlock errors.

A small, typed hierarchy of exceptions raised by beacon verification, the
timelock engine and the envelope format. Callers can catch the base
`BeaconLockError` to handle everything, or the concrete subclasses for more
granular control.

Every class carries two class-level flags:

  * ``retriable``: the same request against another mirror (or later)
    may succeed (network faults, rounds not yet out).
  * ``security_relevant``: the data was authenticated and rejected: somebody
    served a forged/tampered value or the wrong chain.

Nothing in the package retries on its own; the flags are for callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional


class BeaconLockError(Exception):
    """Base class for all beaconlock errors."""

    retriable: ClassVar[bool] = False
    security_relevant: ClassVar[bool] = False


# --------------------------------------------------------------------------
# Encoding / configuration
# --------------------------------------------------------------------------


@dataclass(eq=False)
class DecodingError(BeaconLockError):
    """
    Raised when bytes do not decode to a valid value.

    Attributes:
        what: Which value failed (e.g. 'G1 point', 'chain info', 'hex').
        reason: Short explanation ('length', 'not-on-curve', 'not-in-subgroup', ...).
    """
    what: str
    reason: str = ""

    def __str__(self) -> str:
        base = f"DecodingError: {self.what}"
        return f"{base} ({self.reason})" if self.reason else base


@dataclass(eq=False)
class UnknownScheme(BeaconLockError):
    """Raised when a chain names a scheme identifier outside the supported set."""
    scheme_id: str

    def __str__(self) -> str:
        return f"UnknownScheme: {self.scheme_id!r}"


@dataclass(eq=False)
class SchemeMismatch(BeaconLockError):
    """
    Raised when a request does not fit the scheme's shape: a chained beacon
    without its previous signature, an unchained beacon carrying one, or a
    timelock operation against a chained network.
    """
    scheme_id: str
    reason: str

    def __str__(self) -> str:
        return f"SchemeMismatch: scheme={self.scheme_id} {self.reason}"


ChainMismatch = SchemeMismatch


@dataclass(eq=False)
class ConfigError(BeaconLockError, ValueError):
    """Invalid configuration value."""
    field: str
    reason: str

    def __str__(self) -> str:
        return f"ConfigError: {self.field}: {self.reason}"


# --------------------------------------------------------------------------
# Chain / rounds
# --------------------------------------------------------------------------


@dataclass(eq=False)
class InvalidRound(BeaconLockError):
    """Round numbers start at 1; 0 and negatives have no publication time."""
    round: int
    reason: str = "round must be >= 1"

    def __str__(self) -> str:
        return f"InvalidRound: round={self.round} {self.reason}"


@dataclass(eq=False)
class ChainHashMismatch(BeaconLockError):
    """
    Raised when chain metadata does not hash to the advertised chain hash, or
    when a ciphertext targets a different chain than the one supplied.
    """
    expected_hex: str
    got_hex: str

    security_relevant: ClassVar[bool] = True

    def __str__(self) -> str:
        return f"ChainHashMismatch: expected={self.expected_hex} got={self.got_hex}"


# --------------------------------------------------------------------------
# Beacon verification
# --------------------------------------------------------------------------


class VerificationError(BeaconLockError):
    """A beacon failed authentication."""

    security_relevant: ClassVar[bool] = True


@dataclass(eq=False)
class SignatureInvalid(VerificationError):
    """
    Raised when the pairing check fails for a beacon.

    Attributes:
        round: Round of the rejected beacon.
        reason: Optional explanation.
    """
    round: int
    reason: str = "pairing-check-failed"

    def __str__(self) -> str:
        return f"SignatureInvalid: round={self.round} reason={self.reason}"


class MalformedSignature(DecodingError, SignatureInvalid):
    """A beacon signature whose bytes do not decode to a group element."""

    def __init__(self, round: int, reason: str = "") -> None:
        DecodingError.__init__(self, "signature", reason)
        self.round = round

    def __str__(self) -> str:
        return f"MalformedSignature: round={self.round} reason={self.reason}"


@dataclass(eq=False)
class RandomnessMismatch(VerificationError):
    """Raised when a beacon's randomness is not SHA-256 of its signature."""
    round: int
    expected_hex: str
    got_hex: str

    def __str__(self) -> str:
        return (
            f"RandomnessMismatch: round={self.round} expected={self.expected_hex} "
            f"got={self.got_hex}"
        )


# --------------------------------------------------------------------------
# Timelock / envelope
# --------------------------------------------------------------------------


@dataclass(eq=False)
class MessageTooLong(BeaconLockError):
    """The IBE layer only wraps messages up to the hash size."""
    length: int
    limit: int

    def __str__(self) -> str:
        return f"MessageTooLong: {self.length} bytes > limit {self.limit}"


@dataclass(eq=False)
class IntegrityCheckFailed(BeaconLockError):
    """
    Raised when authenticated decryption fails: the FO re-encryption check,
    the header MAC, or a payload tag. Also the outcome of decrypting with a
    signature from the wrong round.
    """
    reason: str

    security_relevant: ClassVar[bool] = True

    def __str__(self) -> str:
        return f"IntegrityCheckFailed: {self.reason}"


@dataclass(eq=False)
class MalformedEnvelope(BeaconLockError):
    """The envelope is structurally invalid (header, stanza, armor, payload framing)."""
    reason: str

    def __str__(self) -> str:
        return f"MalformedEnvelope: {self.reason}"


# --------------------------------------------------------------------------
# Transport
# --------------------------------------------------------------------------


@dataclass(eq=False)
class TransportError(BeaconLockError):
    """
    A mirror could not be reached or answered with an unexpected status.

    Attributes:
        url: Requested URL.
        reason: Short explanation.
        status: HTTP status code when a response was received.
    """
    url: str
    reason: str
    status: Optional[int] = None

    retriable: ClassVar[bool] = True

    def __str__(self) -> str:
        st = f" status={self.status}" if self.status is not None else ""
        return f"TransportError: {self.url}{st} {self.reason}"


@dataclass(eq=False)
class BeaconNotFound(BeaconLockError):
    """The mirror has no beacon for the requested round."""
    round: int

    retriable: ClassVar[bool] = True

    def __str__(self) -> str:
        return f"BeaconNotFound: round={self.round}"


@dataclass(eq=False)
class RoundNotReached(BeaconLockError):
    """
    Decryption was requested before the target round has been published.

    Attributes:
        round: Target round.
        available_at: Unix time at which the round is scheduled.
    """
    round: int
    available_at: int

    retriable: ClassVar[bool] = True

    def __str__(self) -> str:
        return f"RoundNotReached: round={self.round} available_at={self.available_at}"


__all__ = [
    "BeaconLockError",
    "DecodingError",
    "UnknownScheme",
    "SchemeMismatch",
    "ChainMismatch",
    "ConfigError",
    "InvalidRound",
    "ChainHashMismatch",
    "VerificationError",
    "SignatureInvalid",
    "MalformedSignature",
    "RandomnessMismatch",
    "MessageTooLong",
    "IntegrityCheckFailed",
    "MalformedEnvelope",
    "TransportError",
    "BeaconNotFound",
    "RoundNotReached",
]
