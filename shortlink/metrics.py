"""Prometheus metrics sink for the allocation and resolution engine.

The counters are module-level (one registry per process); ``LinkMetrics`` is
the thin object the core reports through, so tests and embedders can swap in
their own sink.

Exported series
===============
::
    shortlink_links_created_total
    shortlink_allocation_requests_total{status}
    shortlink_allocation_retries_total
    shortlink_allocation_exhausted_total
    shortlink_resolutions_total{status, cache_hit}
    shortlink_hit_count_failures_total
    shortlink_allocation_duration_seconds
    shortlink_resolution_duration_seconds
"""

from prometheus_client import Counter, Histogram

from shortlink.enums import CacheStatus, RequestStatus

__all__ = ["LinkMetrics"]

LINKS_CREATED_TOTAL = Counter(
    "shortlink_links_created_total",
    "Short links successfully created",
)
ALLOCATION_REQUESTS_TOTAL = Counter(
    "shortlink_allocation_requests_total",
    "Link allocation requests by outcome",
    ["status"],
)
ALLOCATION_RETRIES_TOTAL = Counter(
    "shortlink_allocation_retries_total",
    "Candidate codes rejected because they were already taken",
)
ALLOCATION_EXHAUSTED_TOTAL = Counter(
    "shortlink_allocation_exhausted_total",
    "Allocations that ran out of attempts (code space saturation signal)",
)
RESOLUTIONS_TOTAL = Counter(
    "shortlink_resolutions_total",
    "Link resolutions by outcome and cache hit",
    ["status", "cache_hit"],
)
HIT_COUNT_FAILURES_TOTAL = Counter(
    "shortlink_hit_count_failures_total",
    "Hit count increments that could not be applied",
)
ALLOCATION_DURATION = Histogram(
    "shortlink_allocation_duration_seconds",
    "Time taken to allocate a short link",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
RESOLUTION_DURATION = Histogram(
    "shortlink_resolution_duration_seconds",
    "Time taken to resolve a short code",
    buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)


class LinkMetrics:
    """Counter/timer sink used by the coordinator, resolver and hit counters."""

    def link_created(self, duration: float) -> None:
        LINKS_CREATED_TOTAL.inc()
        ALLOCATION_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        ALLOCATION_DURATION.observe(duration)

    def allocation_failed(self, status: RequestStatus, duration: float) -> None:
        ALLOCATION_REQUESTS_TOTAL.labels(status=status).inc()
        ALLOCATION_DURATION.observe(duration)

    def allocation_retry(self) -> None:
        ALLOCATION_RETRIES_TOTAL.inc()

    def allocation_exhausted(self) -> None:
        ALLOCATION_EXHAUSTED_TOTAL.inc()

    def resolution(self, status: RequestStatus, cache: CacheStatus, duration: float) -> None:
        RESOLUTIONS_TOTAL.labels(status=status, cache_hit=cache).inc()
        RESOLUTION_DURATION.observe(duration)

    def hit_count_failure(self, count: int = 1) -> None:
        HIT_COUNT_FAILURES_TOTAL.inc(count)
