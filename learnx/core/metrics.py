"""Prometheus metrics inventory.

Every metric the service exposes is declared here; the modules that own
the behaviour import the metric and increment it at the point of action.

HTTP metrics are populated by MetricsMiddleware.  The lesson metrics
answer the operational questions specific to this service:

  - Is the generative service healthy?  content_requests_total by result
  - Is the step cache doing its job?    lesson_cache_operations_total
  - Is the store degrading silently?    persistence_failures_total
  - Are checkpoints too hard?           checkpoint_results_total
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Lesson loads wait on the generative service, so the tail is long.
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Lesson metrics
# ---------------------------------------------------------------------------

CONTENT_REQUESTS = Counter(
    "content_requests_total",
    "Calls to the generative content service by operation and result",
    ["operation", "result"],  # result: ok|unavailable
)

CONTENT_DURATION = Histogram(
    "content_request_duration_seconds",
    "Latency of generative content calls",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
)

LESSON_CACHE_OPERATIONS = Counter(
    "lesson_cache_operations_total",
    "Cached lesson content lookups by result",
    ["operation"],  # hit|miss
)

PERSISTENCE_FAILURES = Counter(
    "persistence_failures_total",
    "Key-value store operations that failed and were degraded",
    ["namespace", "operation"],  # operation: get|put|decode
)

CHECKPOINT_RESULTS = Counter(
    "checkpoint_results_total",
    "Checkpoint quiz submissions by outcome",
    ["result"],  # pass|fail|rejected|skipped
)

LESSON_TRANSITIONS = Counter(
    "lesson_transitions_total",
    "Lesson session state transitions by target state",
    ["state"],
)
