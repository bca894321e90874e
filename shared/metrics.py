"""
Shared metrics configuration for the token verification SDK.
"""

import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram


class MetricsCollector:
    """Prometheus counters for token verification, key fetching and evaluation."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        self._metrics["token_verifications_total"] = Counter(
            "token_verifications_total",
            "Total token verifications",
            ["token_kind", "outcome"],
            registry=self.registry
        )

        self._metrics["public_key_fetches_total"] = Counter(
            "public_key_fetches_total",
            "Total public key source fetches",
            ["source", "outcome"],
            registry=self.registry
        )

        self._metrics["public_key_fetch_duration_seconds"] = Histogram(
            "public_key_fetch_duration_seconds",
            "Public key fetch duration in seconds",
            ["source"],
            registry=self.registry
        )

        self._metrics["condition_evaluations_total"] = Counter(
            "condition_evaluations_total",
            "Total named condition evaluations",
            ["result"],
            registry=self.registry
        )

    def record_verification(self, token_kind: str, outcome: str):
        """Record a token verification outcome ("verified" or a failure reason)."""
        self._metrics["token_verifications_total"].labels(token_kind=token_kind, outcome=outcome).inc()

    def record_key_fetch(self, source: str, outcome: str):
        """Record a public key fetch outcome."""
        self._metrics["public_key_fetches_total"].labels(source=source, outcome=outcome).inc()

    def record_condition(self, result: bool):
        """Record the result of one named condition."""
        self._metrics["condition_evaluations_total"].labels(result=str(result).lower()).inc()

    @contextmanager
    def time_key_fetch(self, source: str):
        """Context manager to time a key source fetch."""
        start_time = time.time()
        try:
            yield
        finally:
            self._metrics["public_key_fetch_duration_seconds"].labels(source=source).observe(
                time.time() - start_time
            )

    def sample(self, name: str, **labels) -> float:
        """Read the current value of a sample from this collector's registry."""
        value = self.registry.get_sample_value(name, labels)
        return value or 0.0


_default_collector: Optional[MetricsCollector] = None
_default_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide default metrics collector."""
    global _default_collector
    with _default_lock:
        if _default_collector is None:
            _default_collector = MetricsCollector()
        return _default_collector
