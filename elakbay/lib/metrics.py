"""Prometheus-compatible metrics for analytics tracking and request performance."""

from prometheus_client import Counter, Histogram


# Tracking metrics
analytics_track_total = Counter(
    'analytics_track_total',
    'Tracking calls by event name and outcome',
    ['event_name', 'outcome']
)

analytics_insert_failures_total = Counter(
    'analytics_insert_failures_total',
    'Analytics event writes rejected by the event store',
    ['backend']
)

analytics_insert_duration_seconds = Histogram(
    'analytics_insert_duration_seconds',
    'Analytics event write duration in seconds',
    ['backend'],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# Performance metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request duration in seconds',
    ['endpoint', 'method', 'status'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0]
)


def record_track_outcome(event_name: str, outcome: str):
    """Record the outcome of a tracking call.

    Args:
        event_name: Event name ('page_view', 'search_performed', 'filter_used')
        outcome: TrackOutcome value ('emitted', 'skipped_role', ...)
    """
    analytics_track_total.labels(event_name=event_name, outcome=outcome).inc()


def record_insert(backend: str, duration_seconds: float, success: bool):
    """Record an event store write.

    Args:
        backend: Event store backend ('database', 'rest', 'memory')
        duration_seconds: Write duration in seconds
        success: Whether the store accepted the event
    """
    analytics_insert_duration_seconds.labels(backend=backend).observe(duration_seconds)
    if not success:
        analytics_insert_failures_total.labels(backend=backend).inc()


def record_request_duration(endpoint: str, method: str, status: int, duration_seconds: float):
    """Record overall request duration.

    Args:
        endpoint: API endpoint path
        method: HTTP method (GET, POST, etc.)
        status: HTTP status code
        duration_seconds: Request duration in seconds
    """
    request_duration_seconds.labels(
        endpoint=endpoint,
        method=method,
        status=str(status)
    ).observe(duration_seconds)
