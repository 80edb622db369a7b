"""
Prometheus Metrics for Observability

Tracks relay stage latency, upstream LightX calls and HTTP traffic.
Exposes /api/v1/metrics for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Relay Latency - Per Stage
stage_latency_seconds = Histogram(
    "relay_stage_latency_seconds",
    "Time spent in each relay pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# LightX API Calls
lightx_api_calls_total = Counter(
    "lightx_api_calls_total",
    "Total number of LightX API calls",
    labelnames=["path", "http_status"]
)

# Relay runs
relay_runs_total = Counter(
    "relay_runs_total",
    "Total number of run-tool requests by outcome",
    labelnames=["tool", "outcome"]
)

# Order polling
order_poll_attempts = Histogram(
    "relay_order_poll_attempts",
    "Number of order-status calls made per relayed job",
    buckets=[0, 1, 2, 3, 5, 8, 13, 21]
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Application Info
app_info = Info(
    "lightx_relay",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("transfer"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        stage_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_lightx_call(path: str, http_status: int):
    """Record a LightX API call."""
    lightx_api_calls_total.labels(
        path=path,
        http_status=str(http_status)
    ).inc()


def record_relay_run(tool: str, outcome: str):
    """Record a finished run-tool request."""
    relay_runs_total.labels(tool=tool, outcome=outcome).inc()


def record_poll_attempts(attempts: int):
    """Record how many order-status calls a job took."""
    order_poll_attempts.observe(attempts)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
