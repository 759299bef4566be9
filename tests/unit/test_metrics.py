"""
Unit tests for Prometheus request metrics.
"""

import pytest
from prometheus_client import generate_latest

from memserve.handlers import MetricsHandler
from memserve.http import HTTPRequest, HTTPStatus, not_found, ok
from memserve.middleware.metrics import MetricsMiddleware, RequestMetrics


def request_for(target: str) -> HTTPRequest:
    return HTTPRequest(method="GET", path=target.split("?")[0], target=target)


def sample(registry, name: str, path: str):
    return registry.get_sample_value(name, {"path": path})


class TestRequestMetrics:
    """Tests for the metric definitions."""

    def test_observe(self, metrics, registry):
        metrics.observe("/index.html", 0.25)
        metrics.observe("/index.html", 0.5)

        assert sample(registry, "http_requests_total", "/index.html") == 2.0
        assert sample(registry, "http_response_duration_seconds_count", "/index.html") == 2.0
        assert sample(registry, "http_response_duration_seconds_sum", "/index.html") == pytest.approx(0.75)

    def test_default_buckets(self, metrics, registry):
        metrics.observe("/", 0.004)
        value = registry.get_sample_value(
            "http_response_duration_seconds_bucket", {"path": "/", "le": "0.005"}
        )
        assert value == 1.0

    def test_registries_are_isolated(self, metrics):
        other = RequestMetrics()
        metrics.observe("/", 0.1)
        assert other.registry.get_sample_value("http_requests_total", {"path": "/"}) is None

    def test_runtime_collectors_optional(self):
        with_runtime = generate_latest(RequestMetrics(include_runtime=True).registry)
        without = generate_latest(RequestMetrics().registry)
        assert b"python_info" in with_runtime
        assert b"python_info" not in without


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    def test_counts_by_sanitized_path(self, metrics, registry):
        middleware = MetricsMiddleware(metrics)
        middleware(request_for("/a%20b.html?utm=1"), lambda request: ok("x"))

        assert sample(registry, "http_requests_total", "/a+b.html") == 1.0

    def test_control_characters_never_reach_labels(self, metrics, registry):
        middleware = MetricsMiddleware(metrics)
        middleware(request_for("/x%0d%0ay"), lambda request: ok("x"))

        assert sample(registry, "http_requests_total", "/xy") == 1.0

    def test_not_found_still_counted(self, metrics, registry):
        middleware = MetricsMiddleware(metrics)
        middleware(request_for("/nope"), lambda request: not_found())

        assert sample(registry, "http_requests_total", "/nope") == 1.0

    def test_recorded_when_handler_raises(self, metrics, registry):
        def boom(request):
            raise RuntimeError("boom")

        middleware = MetricsMiddleware(metrics)
        with pytest.raises(RuntimeError):
            middleware(request_for("/boom"), boom)

        assert sample(registry, "http_requests_total", "/boom") == 1.0
        assert sample(registry, "http_response_duration_seconds_count", "/boom") == 1.0


class TestMetricsHandler:
    """Tests for the /metrics endpoint."""

    def test_exposition(self, metrics):
        metrics.observe("/index.html", 0.01)
        response = MetricsHandler(metrics.registry).handle(request_for("/metrics"))

        assert response.status == HTTPStatus.OK
        assert response.get_header("Content-Type").startswith("text/plain")
        assert response.get_header("Cache-Control") == "no-store"
        assert b'http_requests_total{path="/index.html"} 1.0' in response.body
        assert b"# TYPE http_response_duration_seconds histogram" in response.body
