"""
Telemetry: Prometheus metrics for oracle traffic and Sentry error reporting.
"""

from sportsim.telemetry.metrics import (
    oracle_requests_total,
    oracle_latency_ms,
    oracle_rate_limited_total,
    oracle_fallbacks_total,
    oracle_parse_failures_total,
    batch_placeholder_chunks_total,
    scheduler_queue_depth,
    record_oracle_attempt,
    record_rate_limit_retry,
    record_fallback,
    record_placeholder_chunk,
    set_queue_depth,
    get_metrics_text,
)

__all__ = [
    "oracle_requests_total",
    "oracle_latency_ms",
    "oracle_rate_limited_total",
    "oracle_fallbacks_total",
    "oracle_parse_failures_total",
    "batch_placeholder_chunks_total",
    "scheduler_queue_depth",
    "record_oracle_attempt",
    "record_rate_limit_retry",
    "record_fallback",
    "record_placeholder_chunk",
    "set_queue_depth",
    "get_metrics_text",
]
