"""
Published beacon record as served by drand's ``/public/{round}`` endpoint.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from beaconlock.constants import ROUND_MAX
from beaconlock.errors import DecodingError, InvalidRound
from beaconlock.utils import from_hex, to_hex


@dataclass(frozen=True)
class Beacon:
    """
    One round of output. ``previous_signature`` is present only on chained
    networks. Nothing here is trusted until `beaconlock.verifier.verify` passes.
    """

    round: int
    randomness: bytes
    signature: bytes
    previous_signature: Optional[bytes] = None

    def __post_init__(self) -> None:
        if isinstance(self.round, bool) or not isinstance(self.round, int):
            raise DecodingError("beacon", "round must be an integer")
        if not 1 <= self.round <= ROUND_MAX:
            raise InvalidRound(self.round)

    @property
    def is_chained(self) -> bool:
        return self.previous_signature is not None

    def expected_randomness(self) -> bytes:
        """SHA-256 of the signature bytes exactly as published."""
        return hashlib.sha256(self.signature).digest()

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "Beacon":
        """
        Parse drand's JSON shape. A missing or empty ``previous_signature``
        means an unchained beacon.
        """
        if not isinstance(d, Mapping):
            raise DecodingError("beacon", "expected a JSON object")
        try:
            rnd = d["round"]
            if isinstance(rnd, bool) or not isinstance(rnd, int):
                raise DecodingError("beacon", "round must be an integer")
            prev = d.get("previous_signature") or None
            return cls(
                round=rnd,
                randomness=from_hex("randomness", d.get("randomness", "")),
                signature=from_hex("signature", d["signature"]),
                previous_signature=from_hex("previous_signature", prev) if prev is not None else None,
            )
        except KeyError as e:
            raise DecodingError("beacon", f"missing field {e.args[0]!r}") from None

    @classmethod
    def from_json(cls, text: Union[str, bytes]) -> "Beacon":
        try:
            d = json.loads(text)
        except ValueError as e:
            raise DecodingError("beacon", f"invalid JSON: {e}") from None
        return cls.from_dict(d)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "round": self.round,
            "randomness": to_hex(self.randomness),
            "signature": to_hex(self.signature),
        }
        if self.previous_signature is not None:
            out["previous_signature"] = to_hex(self.previous_signature)
        return out

    def to_json(self, *, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)


__all__ = ["Beacon"]
