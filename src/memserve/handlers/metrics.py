"""
Prometheus scrape endpoint.

Renders a CollectorRegistry in the text exposition format with
``prometheus_client.generate_latest``.
"""

from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, HTTPStatus


class MetricsHandler:
    """GET /metrics for one registry."""

    def __init__(self, registry: CollectorRegistry):
        self.registry = registry

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type(CONTENT_TYPE_LATEST)
            .no_cache()
            .body(generate_latest(self.registry))
            .build())
