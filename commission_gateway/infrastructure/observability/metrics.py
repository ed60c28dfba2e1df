"""Prometheus metrics for monitoring cache efficiency, upstream health and commissions"""

from prometheus_client import Counter, Histogram

# Reference-data cache
cache_lookup_counter = Counter(
    "commission_cache_lookups_total",
    "Reference-data cache lookups",
    ["cache", "outcome"],  # bin | rates ; hit | miss | corrupt
)

cache_write_failure_counter = Counter(
    "commission_cache_write_failures_total",
    "Cache writes or expiries skipped because the store failed",
    ["operation"],  # set | force_expire
)

# Upstream services
upstream_failure_counter = Counter(
    "commission_upstream_failures_total",
    "Failed reference-data upstream calls",
    ["service", "kind"],
)

upstream_latency_histogram = Histogram(
    "commission_upstream_latency_seconds",
    "Reference-data upstream response time",
    ["service"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0],
)

# Commissions
commission_counter = Counter(
    "commission_calculations_total",
    "Commissions calculated",
    ["region"],  # eu | non_eu
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_commission(is_eu: bool) -> None:
    """Record a completed commission by region"""
    commission_counter.labels(region="eu" if is_eu else "non_eu").inc()
