"""Prometheus metrics for the orchestrator.

Exposes control API latency and per-item batch outcomes. The /metrics
endpoint serves these in Prometheus exposition format.
"""
from __future__ import annotations

import logging

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


control_request_duration = Histogram(
    "fleet_control_request_seconds",
    "Duration of container control API calls",
    ["operation", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, float("inf")),
)

batch_items_total = Counter(
    "fleet_batch_items_total",
    "Batch items processed, by operation and outcome",
    ["operation", "outcome"],
)

scan_failures_total = Counter(
    "fleet_scan_failures_total",
    "Scans aborted because at least one node failed to list containers",
)


def record_item(operation: str, ok: bool) -> None:
    """Count one finished batch item."""
    try:
        batch_items_total.labels(operation=operation, outcome="ok" if ok else "failed").inc()
    except Exception as e:
        logger.warning(f"Failed to record batch item metric: {e}")


def get_metrics() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
