"""
Prometheus metrics for oracle traffic.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- mode:      "single", "batch", "results", "slip", "candidates", "var"
- strategy:  "grounded", "offline"
- status:    "ok", "rate_limited", "malformed", "auth", "error"

FORBIDDEN AS LABELS: team names, dates, match ids, prompts, error messages.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# ORACLE METRICS
# =============================================================================

oracle_requests_total = Counter(
    "sportsim_oracle_requests_total",
    "Oracle attempts by mode, strategy and final status",
    ["mode", "strategy", "status"],
)

oracle_latency_ms = Histogram(
    "sportsim_oracle_latency_ms",
    "Oracle attempt latency in milliseconds (queue wait included)",
    ["mode"],
    buckets=[250, 500, 1000, 2500, 5000, 10000, 30000, 60000, 120000, 300000],
)

oracle_rate_limited_total = Counter(
    "sportsim_oracle_rate_limited_total",
    "Rate-limit signals that triggered a backoff wait",
)

oracle_fallbacks_total = Counter(
    "sportsim_oracle_fallbacks_total",
    "Grounded attempts that fell back to the offline strategy",
    ["mode"],
)

oracle_parse_failures_total = Counter(
    "sportsim_oracle_parse_failures_total",
    "Oracle responses that could not be parsed as JSON",
)

batch_placeholder_chunks_total = Counter(
    "sportsim_batch_placeholder_chunks_total",
    "Batch chunks degraded to placeholder entries",
)

scheduler_queue_depth = Gauge(
    "sportsim_scheduler_queue_depth",
    "Operations waiting in or running through the oracle queue",
)


def record_oracle_attempt(mode: str, strategy: str, status: str, latency_ms: float) -> None:
    """Record one strategy attempt against the oracle."""
    try:
        oracle_requests_total.labels(mode=mode, strategy=strategy, status=status).inc()
        if latency_ms > 0:
            oracle_latency_ms.labels(mode=mode).observe(latency_ms)
        if status == "malformed":
            oracle_parse_failures_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record oracle attempt metric: {e}")


def record_rate_limit_retry() -> None:
    try:
        oracle_rate_limited_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record rate limit metric: {e}")


def record_fallback(mode: str) -> None:
    try:
        oracle_fallbacks_total.labels(mode=mode).inc()
    except Exception as e:
        logger.warning(f"Failed to record fallback metric: {e}")


def record_placeholder_chunk() -> None:
    try:
        batch_placeholder_chunks_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record placeholder metric: {e}")


def set_queue_depth(depth: int) -> None:
    try:
        scheduler_queue_depth.set(depth)
    except Exception as e:
        logger.warning(f"Failed to set queue depth metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
