"""
Prometheus metrics for Directory Service.

Tracks HTTP traffic, cache lookups, partition sizes and refresh cycles.
"""

from fastapi import Response
from prometheus_client import (CONTENT_TYPE_LATEST, Counter, Gauge, Histogram,
                               generate_latest)

# Request metrics
http_requests_total = Counter(
    "directory_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "directory_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Cache metrics
cache_lookups_total = Counter(
    "directory_cache_lookups_total",
    "Point lookups against the record cache",
    ["kind", "result"],
)

cache_partition_records = Gauge(
    "directory_cache_partition_records",
    "Number of records currently held per partition",
    ["kind"],
)

decode_fallbacks_total = Counter(
    "directory_decode_fallbacks_total",
    "Malformed pages replaced by default records",
    ["kind", "field"],
)

# Refresh metrics
refresh_cycles_total = Counter(
    "directory_refresh_cycles_total",
    "Full refresh cycles by outcome",
    ["status"],
)

refresh_kind_total = Counter(
    "directory_refresh_kind_total",
    "Per-kind refreshes by trigger and outcome",
    ["kind", "trigger", "status"],
)

refresh_kind_duration_seconds = Histogram(
    "directory_refresh_kind_duration_seconds",
    "Fetch and replace duration per kind",
    ["kind"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)


def record_cache_lookup(kind, hit: bool) -> None:
    """Record a cache point lookup."""
    cache_lookups_total.labels(kind=kind.value, result="hit" if hit else "miss").inc()


def set_partition_size(kind, size: int) -> None:
    """Update the records-per-partition gauge."""
    cache_partition_records.labels(kind=kind.value).set(size)


def record_decode_fallback(kind, field: str) -> None:
    """Record a malformed page replaced by defaults."""
    decode_fallbacks_total.labels(kind=kind.value, field=field).inc()


def record_refresh(kind, trigger: str, success: bool, duration: float) -> None:
    """Record one per-kind refresh."""
    status = "success" if success else "failed"
    refresh_kind_total.labels(kind=kind.value, trigger=trigger, status=status).inc()
    refresh_kind_duration_seconds.labels(kind=kind.value).observe(duration)


def record_refresh_cycle(success: bool) -> None:
    """Record one full refresh cycle."""
    refresh_cycles_total.labels(status="success" if success else "failed").inc()


def metrics_response() -> Response:
    """Render all metrics in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
