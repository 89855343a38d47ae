from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.stockflow.core.config import settings

_HTTP_LABELS = ("route", "method", "status")
_LATENCY_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)

# name -> (help text, label names)
_COUNTERS = {
    "http_requests_total": ("HTTP requests by route/method/status.", _HTTP_LABELS),
    "idempotency_replay_total": ("Idempotent replay responses.", ()),
    "lock_wait_timeout_total": ("Lock wait timeout occurrences.", ()),
    "invariants_violation_total": ("Integrity invariant violations.", ("check_id",)),
    "transfer_actions_total": ("Committed transfer lifecycle actions.", ("action",)),
}


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


def _when_enabled(method):
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        if not self.enabled:
            return None
        return method(self, *args, **kwargs)

    return wrapper


class Metrics:
    """Process-wide prometheus registry; every recorder is a no-op when disabled."""

    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry: CollectorRegistry | None = None
        self._counters: dict[str, Counter] = {}
        self._http_request_duration_ms: Histogram | None = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._counters = {
            name: Counter(name, help_text, list(labels), registry=self._registry)
            for name, (help_text, labels) in _COUNTERS.items()
        }
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            list(_HTTP_LABELS),
            buckets=_LATENCY_BUCKETS_MS,
            registry=self._registry,
        )

    @_when_enabled
    def reset(self) -> None:
        self._initialize_registry()

    @_when_enabled
    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._counters["http_requests_total"].labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    @_when_enabled
    def increment_idempotency_replay(self) -> None:
        self._counters["idempotency_replay_total"].inc()

    @_when_enabled
    def increment_lock_wait_timeout(self) -> None:
        self._counters["lock_wait_timeout_total"].inc()

    @_when_enabled
    def increment_invariant_violation(self, check_id: str, count: int = 1) -> None:
        self._counters["invariants_violation_total"].labels(check_id=check_id).inc(count)

    @_when_enabled
    def increment_transfer_action(self, action: str) -> None:
        self._counters["transfer_actions_total"].labels(action=action).inc()

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
