"""
Optional middlewares that add logging, metrics, tracing and retries
around any cloud client.
"""
from .cloudwatch_recorder import CloudWatchMetricsRecorder
from .logging_middleware import LoggingMiddleware, extract_service_verb, logging_middleware
from .metrics_middleware import MetricsMiddleware, MetricsRecorder, metrics_middleware
from .retry_middleware import RetryMiddleware, retry_middleware
from .tracing_middleware import Span, Tracer, TracingMiddleware, tracing_middleware

__all__ = [
    'CloudWatchMetricsRecorder',
    'LoggingMiddleware',
    'MetricsMiddleware',
    'MetricsRecorder',
    'RetryMiddleware',
    'Span',
    'Tracer',
    'TracingMiddleware',
    'extract_service_verb',
    'logging_middleware',
    'metrics_middleware',
    'retry_middleware',
    'tracing_middleware',
]
