"""
=============================================================================
HEALTH AND VERSION ENDPOINTS
=============================================================================

Served on the metrics listener next to /metrics:

    GET /healthz   →  200 "ok"                        (liveness probe)
    GET /version   →  200 {"version": "1.0.0",
                           "gitCommit": "3f2c9e1",
                           "buildTime": "2026-10-19T09:00:00Z"}

/healthz deliberately checks nothing. By the time the metrics listener
is up, the Content Store has already been built; a broken content root
never gets this far because the process exits during startup.

Both responses carry ``Cache-Control: no-store`` so a proxy never answers
a probe from cache.

=============================================================================
"""

from dataclasses import dataclass, asdict

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, HTTPStatus


@dataclass(frozen=True)
class BuildInfo:
    """What was deployed: package version plus CI-provided metadata."""

    version: str
    git_commit: str = "MISSING GIT COMMIT"
    build_time: str = "MISSING BUILD TIME"

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "version": data["version"],
            "gitCommit": data["git_commit"],
            "buildTime": data["build_time"],
        }


class HealthHandler:
    """
    Liveness and build-info handlers.

    Usage:
        health = HealthHandler(BuildInfo(version=__version__))
        router.get("/healthz")(health.healthz)
        router.get("/version")(health.version)
    """

    def __init__(self, build_info: BuildInfo):
        self.build_info = build_info

    def healthz(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .text("ok")
            .no_cache()
            .build())

    def version(self, request: HTTPRequest) -> HTTPResponse:
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(self.build_info.to_dict())
            .no_cache()
            .build())
