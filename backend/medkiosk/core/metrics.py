"""
Prometheus metrics configuration
"""
import os

from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Histogram, generate_latest)
from prometheus_client import multiprocess
from prometheus_client.registry import REGISTRY

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# Session Lifecycle Metrics
# ============================================================================

sessions_started_total = Counter(
    'kiosk_sessions_started_total',
    'Total number of kiosk sessions started',
    ['abandoned_previous']  # "true" when cleanup-on-start completed an open session
)

readings_ingested_total = Counter(
    'kiosk_readings_ingested_total',
    'Total number of sensor readings ingested',
    ['label']
)

reviews_total = Counter(
    'kiosk_reviews_total',
    'Total number of reviewer decisions',
    ['decision', 'command']
)

# ============================================================================
# Command Dispatch Metrics
# ============================================================================

commands_dispatched_total = Counter(
    'kiosk_commands_dispatched_total',
    'Total number of polls that returned a pending command',
    ['command']
)

executions_confirmed_total = Counter(
    'kiosk_executions_confirmed_total',
    'Total number of execution acknowledgements',
    ['outcome']  # meaning: 'confirmed', 'duplicate', 'fallback'
)

# ============================================================================
# Store Metrics
# ============================================================================

store_conflicts_total = Counter(
    'kiosk_store_conflicts_total',
    'Total number of lost conditional updates',
    ['operation', 'exhausted']
)


def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return generate_latest(registry)
    return generate_latest(REGISTRY)


def get_metrics_content_type():
    """
    Get content type for Prometheus metrics

    Returns:
        str: Content type for metrics endpoint
    """
    return CONTENT_TYPE_LATEST
