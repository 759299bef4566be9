"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

HTTPResponse is the value every handler and middleware passes back up the
chain; ResponseBuilder is the fluent way to make one.

=============================================================================
SERIALIZATION RULES
=============================================================================

    HTTP/1.1 200 OK\\r\\n
    Cache-Control: max-age=31536000\\r\\n
    Content-Type: text/html; charset=utf-8\\r\\n
    Content-Length: 13\\r\\n                ← added unless status forbids a body
    Date: Mon, 19 Oct 2026 09:00:00 GMT\\r\\n ← always added
    Server: memserve/1.0\\r\\n               ← always added
    \\r\\n
    <h1>Home</h1>                          ← omitted for HEAD requests

Two rules matter for a content server:

    1. 204 and 304 never carry a body, so no Content-Length is invented
       for them (RFC 9110 §8.6).
    2. A HEAD response keeps the Content-Length the GET would have had,
       but the body bytes are not written (RFC 9110 §9.3.2).

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Dict, Any, Union
import json

from .status_codes import HTTPStatus


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be written to a client.

    Header names are stored exactly as set; ``get_header`` does a
    case-insensitive lookup for middleware that did not set them.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {HTTPStatus(self.status).phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    def remove_header(self, name: str) -> None:
        lowered = name.lower()
        for key in [k for k in self.headers if k.lower() == lowered]:
            del self.headers[key]

    @property
    def content_length(self) -> int:
        """
        Length of the representation as the client will see it.

        Uses the Content-Length header when a handler set it (a HEAD
        response may have an empty body but a non-zero length).
        """
        value = self.get_header("Content-Length")
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return len(self.body)

    def to_bytes(self, server_name: str = "memserve/1.0", include_body: bool = True) -> bytes:
        """
        Serialize for ``socket.sendall()``.

        Args:
            server_name: Value for the Server header.
            include_body: False for HEAD requests; headers are unchanged.
        """
        response_headers = dict(self.headers)
        status = HTTPStatus(self.status)

        if status.allows_body:
            if self.get_header("Content-Length") is None:
                response_headers["Content-Length"] = str(len(self.body))
        if self.get_header("Date") is None:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if self.get_header("Server") is None:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        if not include_body or not status.allows_body:
            return header_bytes
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("text/css; charset=utf-8")
            .header("Cache-Control", "max-age=31536000")
            .body(css_bytes)
            .build())

    Every method except ``build()`` returns ``self``.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        indent = 2 if pretty else None
        self._body = json.dumps(data, indent=indent, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def cache(self, max_age: int) -> "ResponseBuilder":
        """
        Set ``Cache-Control: max-age=<max_age>``.

        Content served from memory never changes without a restart, so
        the content handler uses a full year.
        """
        self._headers["Cache-Control"] = f"max-age={max_age}"
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store"
        return self

    def nosniff(self) -> "ResponseBuilder":
        self._headers["X-Content-Type-Options"] = "nosniff"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# HTTP-DATE HELPERS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an IMF-fixdate (RFC 9110 §5.6.7).

        Mon, 19 Oct 2026 09:00:00 GMT

    Naive datetimes are taken to be UTC; aware ones are converted.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


def parse_http_date(value: str) -> Optional[datetime]:
    """
    Parse an HTTP-date header value into an aware UTC datetime.

    Accepts the three formats RFC 9110 requires recipients to handle
    (IMF-fixdate, RFC 850, asctime). Returns None for anything else;
    an unparseable validator is ignored rather than rejected.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# =============================================================================
# CONVENIENCE CONSTRUCTORS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK with a body whose type picks the Content-Type:
    dict/list → JSON, str → text/plain, bytes → as given.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)
    return builder.build()


def error_response(status: HTTPStatus, message: Optional[str] = None) -> HTTPResponse:
    """
    Plain-text error response: ``"<code> <message>\\n"``.

    Errors from a static site server are read by people and CDNs, not
    API clients, so there is no JSON envelope.
    """
    text = message if message is not None else f"{int(status)} {HTTPStatus(status).phrase}"
    return (ResponseBuilder()
        .status(status)
        .text(text + "\n")
        .nosniff()
        .build())


def not_found() -> HTTPResponse:
    """404 with the generic body ``404 page not found``."""
    return error_response(HTTPStatus.NOT_FOUND, "404 page not found")


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header RFC 9110 §15.5.6 requires."""
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED)
    response.headers["Allow"] = ", ".join(allowed_methods)
    return response


def internal_error() -> HTTPResponse:
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)
