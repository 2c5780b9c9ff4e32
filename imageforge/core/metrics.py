"""
Prometheus Metrics for Observability

Tracks pipeline stage latency, per-image outcomes and upscaler runs.
Exposes /api/v1/metrics for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# Per-image outcomes
images_processed_total = Counter(
    "imageforge_images_processed_total",
    "Images that reached a terminal progress event",
    labelnames=["status"]
)

# External upscaler runs
upscaler_invocations_total = Counter(
    "imageforge_upscaler_invocations_total",
    "Upscaler invocations by outcome",
    labelnames=["outcome"]  # success, exit_error, spawn_error, skipped
)

# Batches currently iterating
active_batches_gauge = Gauge(
    "imageforge_active_batches",
    "Number of batches currently being processed"
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
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Application Info
app_info = Info(
    "imageforge_app",
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
        with track_stage_latency("optimize"):
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
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_image_outcome(status: str):
    """Record a terminal event for one image (complete or error)."""
    images_processed_total.labels(status=status).inc()


def record_upscaler_invocation(outcome: str):
    upscaler_invocations_total.labels(outcome=outcome).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
