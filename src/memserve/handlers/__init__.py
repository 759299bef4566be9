"""
=============================================================================
REQUEST HANDLERS
=============================================================================

A handler is any callable ``(HTTPRequest) -> HTTPResponse``.

    ContentHandler   GET/HEAD /*      files from the Content Store
    MetricsHandler   GET /metrics     Prometheus text exposition
    HealthHandler    GET /healthz     liveness ("ok")
                     GET /version     build info as JSON

=============================================================================
"""

from .content import ContentHandler, etag_matches, parse_range
from .health import BuildInfo, HealthHandler
from .metrics import MetricsHandler

__all__ = [
    "ContentHandler",
    "etag_matches",
    "parse_range",
    "BuildInfo",
    "HealthHandler",
    "MetricsHandler",
]
