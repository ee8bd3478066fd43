"""
Operational Metrics for CloudLens

Prometheus metrics for the calls CloudLens makes to cloud provider APIs.
"""

from prometheus_client import Counter, Histogram

GATEWAY_CALLS_TOTAL = Counter(
    "cloudlens_gateway_calls_total",
    "Total number of cloud provider API calls",
    ["service", "operation", "outcome"]  # outcome: 'success', 'error'
)

GATEWAY_LATENCY = Histogram(
    "cloudlens_gateway_latency_seconds",
    "Latency of cloud provider API calls",
    ["service", "operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30)
)
