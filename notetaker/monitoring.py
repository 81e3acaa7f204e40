"""
Monitoring and metrics collection using Prometheus.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, REGISTRY
from typing import Callable
import asyncio
import time
import functools


# Metrics
webhook_events_total = Counter(
    'notetaker_webhook_events_total',
    'Total number of vendor webhook events received',
    ['event_type', 'status']
)

media_downloads_total = Counter(
    'notetaker_media_downloads_total',
    'Total number of media artifacts ingested',
    ['media_type', 'status']
)

ai_operations_total = Counter(
    'notetaker_ai_operations_total',
    'Total number of AI agent operations',
    ['operation', 'status']
)

ai_operation_duration = Histogram(
    'notetaker_ai_operation_duration_seconds',
    'Duration of AI agent operations including retries',
    ['operation']
)

sse_subscribers = Gauge(
    'notetaker_sse_subscribers',
    'Number of connected real-time subscribers'
)

errors_total = Counter(
    'notetaker_errors_total',
    'Total number of errors by type',
    ['error_type', 'component']
)


def track_time(metric: Histogram, labels: dict = None):
    """
    Decorator to track execution time of a function.

    Args:
        metric: Prometheus Histogram metric
        labels: Optional labels for the metric
    """
    def observe(duration: float) -> None:
        if labels:
            metric.labels(**labels).observe(duration)
        else:
            metric.observe(duration)

    def decorator(func: Callable):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                observe(time.time() - start_time)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                observe(time.time() - start_time)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def record_error(error_type: str, component: str):
    """
    Record an error occurrence.

    Args:
        error_type: Type of error (e.g., 'NylasAPIError')
        component: Component where error occurred (e.g., 'media_ingestion')
    """
    errors_total.labels(error_type=error_type, component=component).inc()
