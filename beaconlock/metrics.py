"""
Prometheus metrics for beacon verification and timelock operations.

Instruments:
  • beacon_verifications_total: verification attempts per outcome
  • timelock_operations_total: IBE / envelope operations per (op, outcome)
  • verify_seconds: time spent in the pairing check
  • beacon_fetches_total: HTTP fetches per (kind, outcome)

Label cardinality is kept low: only small, fixed vocabularies are used, and
never per-round or per-chain labels.

Usage
-----
    from beaconlock.metrics import METRICS

    with METRICS.verify_timer():
        ok = pairing_equal(...)
    METRICS.record_verification("ok")

Construct your own `Metrics` with a separate registry for isolated tests.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable, Iterator

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

_VERIFY_OUTCOMES = (
    "ok",
    "signature_invalid",
    "randomness_mismatch",
    "scheme_mismatch",
    "decoding_error",
    "unknown_scheme",
)

_TIMELOCK_OPS = ("encrypt", "decrypt", "seal", "open")
_TIMELOCK_OUTCOMES = ("ok", "integrity_failed", "malformed", "rejected")

_FETCH_KINDS = ("info", "beacon")
_FETCH_OUTCOMES = ("ok", "not_found", "http_error", "network_error", "invalid")

# Pure-Python pairings take on the order of seconds.
_VERIFY_BUCKETS = (
    0.05, 0.1, 0.25, 0.5,
    1.0, 2.5, 5.0, 10.0, 30.0,
)


class Metrics:
    """
    Container for all beaconlock Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "beaconlock",
        subsystem: str = "client",
        registry: CollectorRegistry = REGISTRY,
        verify_buckets: Iterable[float] = _VERIFY_BUCKETS,
    ) -> None:
        self.verifications_total = Counter(
            "beacon_verifications_total",
            "Beacon verification attempts, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.timelock_total = Counter(
            "timelock_operations_total",
            "Timelock and envelope operations, labeled by op and outcome.",
            labelnames=("op", "outcome"),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.fetches_total = Counter(
            "beacon_fetches_total",
            "HTTP fetches against beacon mirrors, labeled by kind and outcome.",
            labelnames=("kind", "outcome"),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.verify_seconds = Histogram(
            "verify_seconds",
            "Time spent in the beacon pairing check (seconds).",
            buckets=tuple(verify_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_verification(self, outcome: str) -> None:
        if outcome not in _VERIFY_OUTCOMES:
            outcome = "decoding_error"
        self.verifications_total.labels(outcome=outcome).inc()

    def record_timelock(self, op: str, outcome: str) -> None:
        if op not in _TIMELOCK_OPS:
            return
        if outcome not in _TIMELOCK_OUTCOMES:
            outcome = "rejected"
        self.timelock_total.labels(op=op, outcome=outcome).inc()

    def record_fetch(self, kind: str, outcome: str) -> None:
        if kind not in _FETCH_KINDS:
            return
        if outcome not in _FETCH_OUTCOMES:
            outcome = "invalid"
        self.fetches_total.labels(kind=kind, outcome=outcome).inc()

    @contextmanager
    def verify_timer(self) -> Iterator[None]:
        t0 = perf_counter()
        try:
            yield
        finally:
            self.verify_seconds.observe(perf_counter() - t0)


METRICS = Metrics()

__all__ = ["Metrics", "METRICS"]
