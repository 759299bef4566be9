"""
=============================================================================
GZIP COMPRESSION MIDDLEWARE
=============================================================================

Gzip-encodes response bodies for clients that advertise gzip support.

=============================================================================
NEGOTIATION
=============================================================================

    Accept-Encoding                     gzip?
    ───────────────                     ─────
    (absent)                            no
    gzip, deflate, br                   yes
    br;q=1.0, gzip;q=0.5                yes
    gzip;q=0                            no   (explicitly refused)
    *                                   yes
    *, gzip;q=0                         no

=============================================================================
WHAT GETS COMPRESSED
=============================================================================

Everything with a body, whatever its type. Responses are left alone when:

    - the client did not accept gzip
    - the status never has a body (204, 304)
    - the body is empty
    - a Content-Encoding is already set
    - it is a 206 partial response (Content-Range counts identity bytes)

A compressed response gets:

    Content-Encoding: gzip
    Content-Length: <compressed size>
    Vary: Accept-Encoding      (merged into any existing Vary)

Compression runs inline on the connection's thread; there is no separate
error path. A client that disconnects mid-response shows up as an
ordinary send failure.

=============================================================================
"""

import gzip
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus


def _quality(params: list[str]) -> float:
    for param in params:
        name, _, value = param.strip().partition("=")
        if name.strip().lower() == "q":
            try:
                return float(value)
            except ValueError:
                return 0.0
    return 1.0


def accepts_gzip(accept_encoding: Optional[str]) -> bool:
    """Whether an Accept-Encoding header value admits gzip."""
    if not accept_encoding:
        return False

    wildcard: Optional[float] = None
    for item in accept_encoding.split(","):
        coding, *params = item.split(";")
        coding = coding.strip().lower()
        if coding in ("gzip", "x-gzip"):
            return _quality(params) > 0
        if coding == "*":
            wildcard = _quality(params)
    return wildcard is not None and wildcard > 0


def add_vary(response: HTTPResponse, header: str) -> None:
    """Merge ``header`` into the response's Vary list."""
    vary = response.get_header("Vary", "")
    names = [name.strip() for name in vary.split(",") if name.strip()]
    if header.lower() in (name.lower() for name in names) or "*" in names:
        return
    response.remove_header("Vary")
    response.headers["Vary"] = ", ".join(names + [header])


class CompressionMiddleware(Middleware):
    """
    Response compression middleware.

    Args:
        level: gzip compression level, 1 (fastest) to 9 (smallest).
        min_size: Bodies shorter than this are sent as-is. 0 compresses
            every non-empty body.
    """

    def __init__(self, level: int = 6, min_size: int = 0):
        self.level = level
        self.min_size = min_size

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        wants_gzip = accepts_gzip(request.get_header("accept-encoding"))

        response = next(request)

        if not wants_gzip:
            return response

        # Caches must key on Accept-Encoding for every variant, including
        # the 304s that revalidate a compressed 200.
        add_vary(response, "Accept-Encoding")

        if not self._should_compress(response):
            return response

        response.body = gzip.compress(response.body, compresslevel=self.level)
        response.remove_header("Content-Length")
        response.headers["Content-Encoding"] = "gzip"
        response.headers["Content-Length"] = str(len(response.body))
        return response

    def _should_compress(self, response: HTTPResponse) -> bool:
        if not HTTPStatus(response.status).allows_body:
            return False
        if response.status == HTTPStatus.PARTIAL_CONTENT:
            return False
        if response.get_header("Content-Encoding") is not None:
            return False
        if not response.body or len(response.body) < self.min_size:
            return False
        return True
