"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read by a Connection into an HTTPRequest.

=============================================================================
WHAT A STATIC SERVER NEEDS FROM A REQUEST
=============================================================================

    GET /posts/caf%C3%A9/?ref=rss HTTP/1.1\r\n
    Host: example.com\r\n
    Accept-Encoding: gzip, br\r\n
    If-None-Match: W/"1767225600"\r\n
    \r\n

    ┌──────────────┬────────────────────────────────────────────────────┐
    │ method       │ "GET"                                              │
    │ target       │ "/posts/caf%C3%A9/?ref=rss"   (logged verbatim)    │
    │ raw_path     │ "/posts/caf%C3%A9/"           (store lookup input) │
    │ path         │ "/posts/café/"                (routing)            │
    │ version      │ "HTTP/1.1"                                         │
    │ headers      │ {"host": ..., "accept-encoding": ..., ...}         │
    └──────────────┴────────────────────────────────────────────────────┘

The raw (still percent-encoded) path is kept alongside the decoded one:
store lookups run it through sanitize_path(), which performs its own
decoding, and decoding twice would turn a literal "%2541" into "A".

Unlike a filesystem-backed server, ".." segments are NOT rejected here.
The Content Store is a flat map, so "/../etc/passwd" is simply a key that
does not exist and the handler answers 404.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, urlsplit, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code to answer with:

        400 Bad Request                - malformed syntax
        405 Method Not Allowed         - unknown method token
        413 Payload Too Large          - over max_request_size
        505 HTTP Version Not Supported - not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are stored lowercase; HTTP header names are
    case-insensitive (RFC 9110 §5.1).
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    # Router-injected parameters
    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    target: str = ""
    raw_path: str = ""

    def __post_init__(self):
        if not self.target:
            self.target = self.path
        if not self.raw_path:
            self.raw_path = self.target.split("?", 1)[0] or "/"

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def referer(self) -> str:
        return self.headers.get("referer", "")

    @property
    def is_head(self) -> bool:
        return self.method == "HEAD"

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: keep-alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        raw bytes
            │
            ├── size check ──────────────► 413
            ├── split at \\r\\n\\r\\n ──────────► 400 if missing
            ├── request line ────────────► 400 / 405 / 505
            ├── header lines (lowercased, repeats joined with ", ")
            └── body (exactly Content-Length bytes)

    ==========================================================================
    """

    VALID_METHODS = {
        "GET", "HEAD", "POST", "PUT", "DELETE",
        "PATCH", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Peer (ip, port), used as the fallback client IP.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        # Anything past Content-Length belongs to the next pipelined request.
        body = body[:content_length]

        parsed = urlsplit(target)
        raw_path = parsed.path or "/"

        return HTTPRequest(
            method=method,
            path=unquote(raw_path),
            version=version,
            headers=headers,
            query_params=parse_qs(parsed.query, keep_blank_values=True),
            body=body,
            client_address=client_address,
            target=target,
            raw_path=raw_path,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD SP REQUEST-TARGET SP HTTP-VERSION".

        Returns:
            (method, request target, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        # Absolute-form targets ("GET http://host/path HTTP/1.1") are
        # reduced to their path by urlsplit() in parse().
        if not (target.startswith("/") or target.startswith("http")):
            raise HTTPParseError(f"Invalid request target: {target!r}")

        return method, target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Obsolete line folding (continuation lines starting with whitespace)
        is joined onto the previous header; repeated headers are combined
        with ", " (RFC 9110 §5.3).
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
