"""
beaconlock: a client for drand-compatible randomness beacons.

- verify published beacons against a chain's collective public key
  (chained, unchained, and G1-signature schemes)
- map rounds to wall-clock time and back
- timelock-encrypt data to a future round (tlock IBE + age envelopes)

Only light, stable exports are surfaced here to avoid import cycles.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
