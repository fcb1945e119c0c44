"""
Version helpers for beaconlock.

Tries importlib.metadata for the installed distribution first and falls back
to the static BASE_VERSION for source checkouts.
"""
from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as _pkg_version

# Bump this when making intentional, source-level releases.
BASE_VERSION = "0.3.0"

_PKG_NAME = "beaconlock"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_PKG_NAME)
    except PackageNotFoundError:
        return f"{BASE_VERSION}+local"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION"]
