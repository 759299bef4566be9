"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Writes one line per request to the ``memserve.access`` logger in the
combined log format:

    203.0.113.7 - - [19/Oct/2026:10:55:36 +0000] "GET /post/ HTTP/1.1" 200 5120 "https://example.com/" "curl/8.4.0"
    ───────────       ──────────────────────────  ─────────────────────── ─── ──── ────────────────────── ───────────
    client IP         local time                  request line            st. size referer                user agent

The size is the uncompressed body length, or 0 for HEAD since no body
is sent.

Where the line ends up is decided by logging configuration, not here:

    logging.getLogger("memserve.access").addHandler(FileHandler(...))

=============================================================================
CLIENT ADDRESS
=============================================================================

Behind a CDN or load balancer the socket peer is the proxy, so the
address is taken from the first of:

    1. CF-Connecting-IP           (Cloudflare)
    2. X-Forwarded-For            (first hop, the original client)
    3. the socket peer address

The headers are trusted as sent. Run behind a proxy that overwrites
them if that matters.

=============================================================================
FIELD SANITIZING
=============================================================================

Every client-supplied field has its control characters removed, so a
request cannot forge extra log lines with an embedded CR/LF:

    User-Agent: "x\\r\\n1.2.3.4 - - [...]"  is logged as  "x1.2.3.4 - - [...]"

=============================================================================
"""

import logging
import time
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("memserve.access")

TIMESTAMP_FORMAT = "%d/%b/%Y:%H:%M:%S %z"

_CONTROL_CHARS = dict.fromkeys([*range(0x20), 0x7F])


def sanitize_field(value: str) -> str:
    """Drop control characters from one log field."""
    return value.translate(_CONTROL_CHARS)


def client_ip(request: HTTPRequest) -> str:
    """The originating client address for a request."""
    cf_ip = request.get_header("cf-connecting-ip")
    if cf_ip:
        return cf_ip.strip()

    forwarded = request.get_header("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client_address[0] if request.client_address else "-"


@dataclass
class RequestLog:
    """One access log entry."""

    client_ip: str
    timestamp: str
    method: str
    uri: str
    protocol: str
    status_code: int
    content_length: int
    referer: str
    user_agent: str

    @classmethod
    def from_exchange(cls, request: HTTPRequest, response: HTTPResponse) -> "RequestLog":
        return cls(
            client_ip=client_ip(request),
            timestamp=time.strftime(TIMESTAMP_FORMAT),
            method=request.method,
            uri=request.target,
            protocol=request.version,
            status_code=response.status,
            content_length=0 if request.is_head else response.content_length,
            referer=request.referer or "",
            user_agent=request.user_agent or "",
        )

    def to_text(self) -> str:
        return (
            f'{sanitize_field(self.client_ip)} - - [{self.timestamp}] '
            f'"{sanitize_field(self.method)} {sanitize_field(self.uri)} {sanitize_field(self.protocol)}" '
            f'{self.status_code} {self.content_length} '
            f'"{sanitize_field(self.referer)}" "{sanitize_field(self.user_agent)}"'
        )


class AccessLogMiddleware(Middleware):
    """
    Request logging middleware.

    Placed innermost in the content chain, so ``content_length`` is the
    size of the body the handler produced, before any compression.

    Args:
        log_level: Level the access lines are emitted at.
    """

    def __init__(self, log_level: int = logging.INFO):
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        try:
            response = next(request)
        except Exception as e:
            logger.error(
                f"Request failed: {request.method} {sanitize_field(request.target)} "
                f"- {type(e).__name__}: {e}"
            )
            raise

        if logger.isEnabledFor(self.log_level):
            logger.log(self.log_level, RequestLog.from_exchange(request, response).to_text())

        return response
