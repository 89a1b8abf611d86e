"""
Prometheus metrics for hierarchy targeting.

Provides counters, histograms, and gauges for monitoring:
- Repository fetches by taxonomy, operation and outcome
- Stale fetch results discarded by the liveness guard
- Selector transitions and emitted descriptors
- Nodes held in hierarchy caches
"""

import time
from threading import Lock

from prometheus_client import REGISTRY, Counter, Gauge, Histogram, Info, generate_latest

_metrics_lock = Lock()
_initialized = False


# --- Metric Definitions ---

FETCHES = Counter(
    "targeting_fetches_total",
    "Repository fetches issued by hierarchy caches",
    ["taxonomy", "operation", "outcome"],  # outcome: success, failure, timeout, stale
)

FETCH_DURATION = Histogram(
    "targeting_fetch_duration_seconds",
    "Repository fetch duration in seconds",
    ["taxonomy", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

FETCH_FALLBACKS = Counter(
    "targeting_fetch_fallbacks_total",
    "Root loads that fell back from the tree endpoint",
    ["taxonomy", "to_source"],  # to_source: flat, empty
)

STALE_RESULTS = Counter(
    "targeting_stale_results_total",
    "Fetch results discarded because the selection moved on",
    ["taxonomy", "operation"],
)

TRANSITIONS = Counter(
    "targeting_transitions_total",
    "Selector transitions by name and outcome",
    ["transition", "outcome"],  # outcome: applied, rejected
)

DESCRIPTORS_EMITTED = Counter(
    "targeting_descriptors_emitted_total",
    "Targeting descriptors emitted to consumers",
    ["kind", "level"],
)

CACHED_NODES = Gauge(
    "targeting_cached_nodes",
    "Nodes currently held by hierarchy caches",
    ["taxonomy"],
)

COMPONENT_INFO = Info(
    "targeting",
    "Hierarchy targeting component information",
)


# --- Timer Context Manager ---


class Timer:
    """Context manager for timing operations and recording to histograms."""

    def __init__(self, histogram: Histogram, labels: dict[str, str] | None = None):
        self.histogram = histogram
        self.labels = labels or {}
        self.start_time: float | None = None
        self.duration: float | None = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.duration = time.perf_counter() - self.start_time
            if self.labels:
                self.histogram.labels(**self.labels).observe(self.duration)
            else:
                self.histogram.observe(self.duration)

    @property
    def elapsed_ms(self) -> int:
        """Get elapsed time in milliseconds."""
        if self.duration is not None:
            return int(self.duration * 1000)
        if self.start_time is not None:
            return int((time.perf_counter() - self.start_time) * 1000)
        return 0


# --- Recording Helpers ---


def record_fetch(taxonomy: str, operation: str, outcome: str) -> None:
    FETCHES.labels(taxonomy=taxonomy, operation=operation, outcome=outcome).inc()


def record_fallback(taxonomy: str, to_source: str) -> None:
    FETCH_FALLBACKS.labels(taxonomy=taxonomy, to_source=to_source).inc()


def record_stale_result(taxonomy: str, operation: str) -> None:
    STALE_RESULTS.labels(taxonomy=taxonomy, operation=operation).inc()


def record_transition(transition: str, applied: bool) -> None:
    outcome = "applied" if applied else "rejected"
    TRANSITIONS.labels(transition=transition, outcome=outcome).inc()


def record_descriptor(kind: str, level: str | None) -> None:
    DESCRIPTORS_EMITTED.labels(kind=kind, level=level or "none").inc()


def update_cached_nodes(taxonomy: str, count: int) -> None:
    CACHED_NODES.labels(taxonomy=taxonomy).set(count)


# --- Metrics Export ---


def get_metrics_text() -> str:
    """Generate Prometheus metrics as string."""
    return generate_latest(REGISTRY).decode("utf-8")


def get_sample_value(name: str, labels: dict[str, str] | None = None) -> float | None:
    """Read one sample from the default registry (None if never recorded)."""
    return REGISTRY.get_sample_value(name, labels or {})


# --- Initialization ---


def initialize_metrics(version: str = "0.1.0", repository: str = "http") -> None:
    """
    Initialize metrics with component information.

    Call this once at startup.
    """
    global _initialized

    with _metrics_lock:
        if _initialized:
            return

        COMPONENT_INFO.info({"version": version, "repository": repository})
        _initialized = True


def reset_metrics() -> None:
    """
    Reset initialization state (for testing).
    """
    global _initialized
    _initialized = False
