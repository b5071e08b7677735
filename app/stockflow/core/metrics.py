from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.stockflow.core.config import settings

NAMESPACE = "stockflow"
LATENCY_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000)


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


@dataclass
class _Collectors:
    registry: CollectorRegistry
    http_requests: Counter
    http_latency_ms: Histogram
    transitions: Counter
    assignment_stages: Counter
    authorization_denied: Counter
    lock_wait_timeouts: Counter
    invariant_violations: Counter


def _build_collectors() -> _Collectors:
    registry = CollectorRegistry()
    http_labels = ["route", "method", "status"]
    return _Collectors(
        registry=registry,
        http_requests=Counter(
            "http_requests_total", "HTTP requests by route/method/status.", http_labels,
            namespace=NAMESPACE, registry=registry,
        ),
        http_latency_ms=Histogram(
            "http_request_duration_ms", "HTTP request latency in milliseconds.", http_labels,
            buckets=LATENCY_BUCKETS_MS, namespace=NAMESPACE, registry=registry,
        ),
        transitions=Counter(
            "transfer_transitions_total", "Transfer status transitions applied.", ["from_status", "to_status"],
            namespace=NAMESPACE, registry=registry,
        ),
        assignment_stages=Counter(
            "assignment_stage_total", "Packing task and delivery assignment stage changes.", ["kind", "stage"],
            namespace=NAMESPACE, registry=registry,
        ),
        authorization_denied=Counter(
            "authorization_denied_total", "Transfer actions refused by the authorization gate.", ["action"],
            namespace=NAMESPACE, registry=registry,
        ),
        lock_wait_timeouts=Counter(
            "lock_wait_timeout_total", "Lock wait timeout occurrences.",
            namespace=NAMESPACE, registry=registry,
        ),
        invariant_violations=Counter(
            "invariants_violation_total", "Integrity scan findings by check.", ["check_id"],
            namespace=NAMESPACE, registry=registry,
        ),
    )


class Metrics:
    """Process-wide collectors; every recorder is a no-op when metrics are disabled."""

    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._collectors = _build_collectors() if self.enabled else None

    def reset(self) -> None:
        if self.enabled:
            self._collectors = _build_collectors()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if self._collectors is None:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._collectors.http_requests.labels(**labels).inc()
        self._collectors.http_latency_ms.labels(**labels).observe(latency_ms)

    def record_transition(self, from_status: str | None, to_status: str) -> None:
        if self._collectors is None:
            return
        self._collectors.transitions.labels(from_status=from_status or "none", to_status=to_status).inc()

    def record_assignment_stage(self, kind: str, stage: str) -> None:
        if self._collectors is None:
            return
        self._collectors.assignment_stages.labels(kind=kind, stage=stage).inc()

    def increment_authorization_denied(self, action: str) -> None:
        if self._collectors is None:
            return
        self._collectors.authorization_denied.labels(action=action).inc()

    def increment_lock_wait_timeout(self) -> None:
        if self._collectors is None:
            return
        self._collectors.lock_wait_timeouts.inc()

    def increment_invariant_violation(self, check_id: str, count: int = 1) -> None:
        if self._collectors is None:
            return
        self._collectors.invariant_violations.labels(check_id=check_id).inc(count)

    def render(self) -> MetricsSnapshot:
        if self._collectors is None:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._collectors.registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
