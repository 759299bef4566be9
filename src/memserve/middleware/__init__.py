"""
Middleware for the content chain.

    CompressionMiddleware   gzip for clients that accept it (outermost)
    MetricsMiddleware       Prometheus request count and duration
    AccessLogMiddleware     combined-format access log (innermost)
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .compression import CompressionMiddleware, accepts_gzip, add_vary
from .metrics import MetricsMiddleware, RequestMetrics
from .logging import AccessLogMiddleware, RequestLog, client_ip, sanitize_field

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "CompressionMiddleware",
    "accepts_gzip",
    "add_vary",
    "MetricsMiddleware",
    "RequestMetrics",
    "AccessLogMiddleware",
    "RequestLog",
    "client_ip",
    "sanitize_field",
]
