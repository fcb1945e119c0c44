"""
Configuration for beaconlock clients and the CLI.

Three small dataclasses, each with `validate()`:

  • ClientConfig: which mirror to talk to and how strictly
  • LoggingConfig: level / format / optional file sink
  • BeaconLockConfig: the aggregate, plus envelope defaults

Sources: defaults, environment (``BEACONLOCK_*``), or a JSON/YAML file whose
keys mirror the dataclass structure. Nothing is persisted.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from beaconlock.chain import ChainVerification
from beaconlock.client import ChainOptions
from beaconlock.curve import PointEncoding
from beaconlock.errors import ConfigError, DecodingError

DEFAULT_URL = "https://api.drand.sh"
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass
class ClientConfig:
    """
    url: Mirror base URL (for multi-network mirrors include the chain hash path).
    timeout_s: Per-request timeout.
    verify_beacons: Verify every fetched beacon.
    cache: Cache chain info and allow HTTP caching.
    chain_hash: Optional hex chain hash to pin.
    public_key: Optional hex public key to pin.
    encoding: Point convention of the chain ("zcash" for drand networks).
    """

    url: str = DEFAULT_URL
    timeout_s: float = 10.0
    verify_beacons: bool = True
    cache: bool = True
    chain_hash: Optional[str] = None
    public_key: Optional[str] = None
    encoding: str = PointEncoding.ZCASH.value

    def validate(self) -> None:
        if not self.url or not self.url.startswith(("http://", "https://")):
            raise ConfigError("client.url", "must be an http(s) URL")
        if self.timeout_s <= 0:
            raise ConfigError("client.timeout_s", "must be > 0")
        try:
            PointEncoding.parse(self.encoding)
        except DecodingError:
            raise ConfigError("client.encoding", f"unknown point encoding {self.encoding!r}") from None
        try:
            self.verification()
        except DecodingError as e:
            raise ConfigError("client.chain_hash/public_key", e.reason) from None

    def verification(self) -> Optional[ChainVerification]:
        if not self.chain_hash and not self.public_key:
            return None
        return ChainVerification.from_hex(hash=self.chain_hash, public_key=self.public_key)

    def options(self) -> ChainOptions:
        return ChainOptions(
            verify_beacons=self.verify_beacons,
            cache=self.cache,
            verification=self.verification(),
        )


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    json: Optional[bool] = None
    file: Optional[str] = None

    def validate(self) -> None:
        if self.level.upper() not in _LEVELS:
            raise ConfigError("logging.level", f"must be one of {sorted(_LEVELS)}")


@dataclass
class BeaconLockConfig:
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    armor: bool = False

    def validate(self) -> None:
        self.client.validate()
        self.logging.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    @staticmethod
    def from_env(prefix: str = "BEACONLOCK_", env: Optional[Dict[str, str]] = None) -> "BeaconLockConfig":
        """
        Load configuration from environment variables. All are optional.

          - BEACONLOCK_URL=https://api.drand.sh
          - BEACONLOCK_TIMEOUT_S=10
          - BEACONLOCK_VERIFY=true
          - BEACONLOCK_CACHE=true
          - BEACONLOCK_CHAIN_HASH=8990e7a9...
          - BEACONLOCK_PUBLIC_KEY=868f005e...
          - BEACONLOCK_ENCODING=zcash
          - BEACONLOCK_LOG_LEVEL=INFO
          - BEACONLOCK_LOG_FORMAT=json|text
          - BEACONLOCK_LOG_FILE=/var/log/beaconlock.log
          - BEACONLOCK_ARMOR=false
        """
        source = os.environ if env is None else env

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = source.get(key)
            if raw is None or raw == "":
                return default
            try:
                if cast is bool:
                    return raw.strip().lower() in {"1", "true", "yes", "on"}
                return cast(raw)
            except (TypeError, ValueError) as e:
                raise ConfigError(key, f"invalid value {raw!r}") from e

        fmt = _get("LOG_FORMAT", str, None)
        cfg = BeaconLockConfig(
            client=ClientConfig(
                url=_get("URL", str, DEFAULT_URL),
                timeout_s=_get("TIMEOUT_S", float, 10.0),
                verify_beacons=_get("VERIFY", bool, True),
                cache=_get("CACHE", bool, True),
                chain_hash=_get("CHAIN_HASH", str, None),
                public_key=_get("PUBLIC_KEY", str, None),
                encoding=_get("ENCODING", str, PointEncoding.ZCASH.value),
            ),
            logging=LoggingConfig(
                level=_get("LOG_LEVEL", str, "WARNING"),
                json=None if fmt is None else fmt.strip().lower() == "json",
                file=_get("LOG_FILE", str, None),
            ),
            armor=_get("ARMOR", bool, False),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str | Path) -> "BeaconLockConfig":
        """
        Load from JSON or YAML (by extension; .yaml/.yml are YAML). Example:

            client:
              url: https://api.drand.sh/52db9ba70e0cc0f6eaf7803dd07447a1f5477735fd3f661792ba94600c84e971
              verify_beacons: true
            logging:
              level: INFO
            armor: true
        """
        p = Path(path)
        text = p.read_text(encoding="utf-8")
        try:
            if p.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(text) or {}
            else:
                data = json.loads(text)
        except (ValueError, yaml.YAMLError) as e:
            raise ConfigError(str(path), f"cannot parse: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(str(path), "top level must be a mapping")

        try:
            cfg = BeaconLockConfig(
                client=ClientConfig(**(data.get("client") or {})),
                logging=LoggingConfig(**(data.get("logging") or {})),
                armor=bool(data.get("armor", False)),
            )
        except TypeError as e:
            raise ConfigError(str(path), f"unknown key: {e}") from e
        cfg.validate()
        return cfg


__all__ = [
    "DEFAULT_URL",
    "ClientConfig",
    "LoggingConfig",
    "BeaconLockConfig",
]
