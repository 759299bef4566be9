"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw socket bytes and handler objects:

    request.py       bytes → HTTPRequest (RequestParser, HTTPParseError)
    response.py      HTTPResponse → bytes (ResponseBuilder, HTTP-date helpers)
    router.py        (method, path) → handler
    status_codes.py  HTTPStatus enum with reason phrases
    mime_types.py    Content-Type detection for loaded files

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    format_http_date,
    parse_http_date,
    ok,
    error_response,
    not_found,
    method_not_allowed,
    internal_error,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus
from .mime_types import detect_content_type, get_mime_type, sniff_content_type

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "format_http_date",
    "parse_http_date",
    "ok",
    "error_response",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "Router",
    "Route",
    "RouteMatch",
    "HTTPStatus",
    "detect_content_type",
    "get_mime_type",
    "sniff_content_type",
]
