"""
=============================================================================
PROMETHEUS METRICS MIDDLEWARE
=============================================================================

Records every request into two series labelled by the sanitized path:

    # TYPE http_requests_total counter
    http_requests_total{path="/index.html"} 42.0

    # TYPE http_response_duration_seconds histogram
    http_response_duration_seconds_bucket{le="0.005",path="/index.html"} 40.0
    ...
    http_response_duration_seconds_sum{path="/index.html"} 0.0712
    http_response_duration_seconds_count{path="/index.html"} 42.0

Buckets are prometheus_client's defaults (5ms ... 10s).

The duration covers everything the middleware wraps (access log,
routing, lookup) and is recorded in a ``finally`` block, so a handler
that raises is still counted.

Label values go through sanitize_path(), the same function that builds
store keys; a crafted path cannot inject control characters into the
exposition output.

=============================================================================
REGISTRIES
=============================================================================

RequestMetrics owns its own CollectorRegistry instead of the global
REGISTRY. Each server (and each test) gets an isolated set of series,
and the /metrics endpoint renders exactly that registry.

=============================================================================
"""

import time
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    GCCollector,
    PlatformCollector,
    ProcessCollector,
)

from .base import Middleware, NextHandler
from ..content.paths import sanitize_path
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


class RequestMetrics:
    """The request counter and duration histogram, bound to one registry."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, include_runtime: bool = False):
        self.registry = registry if registry is not None else CollectorRegistry()

        if include_runtime:
            # Same process_* / python_* series the default registry exposes.
            ProcessCollector(registry=self.registry)
            PlatformCollector(registry=self.registry)
            GCCollector(registry=self.registry)

        self.requests_total = Counter(
            "http_requests_total",
            "Number of HTTP requests.",
            ["path"],
            registry=self.registry,
        )
        self.response_duration = Histogram(
            "http_response_duration_seconds",
            "Duration of HTTP responses.",
            ["path"],
            registry=self.registry,
        )

    def observe(self, path: str, duration: float) -> None:
        self.requests_total.labels(path=path).inc()
        self.response_duration.labels(path=path).observe(duration)


class MetricsMiddleware(Middleware):
    """Times the wrapped chain and records it per sanitized path."""

    def __init__(self, metrics: RequestMetrics):
        self.metrics = metrics

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        path = sanitize_path(request.raw_path)
        start_time = time.perf_counter()
        try:
            return next(request)
        finally:
            self.metrics.observe(path, time.perf_counter() - start_time)
