"""
=============================================================================
CONTENT HANDLER (serve from store)
=============================================================================

Answers GET and HEAD for any path from a ContentStore.

=============================================================================
REQUEST FLOW
=============================================================================

    GET /post/hello.html
          │
          ▼
    store.lookup(raw_path) ── miss ──► 404 "404 page not found"
          │ hit
          ▼
    validators: Last-Modified, ETag W/"<load time>"
          │
          ├── If-Match fails / If-Unmodified-Since older ──► 412
          ├── If-None-Match matches / If-Modified-Since ok ─► 304
          │
          ├── Range: bytes=a-b (one range, If-Range ok) ────► 206
          ├── Range outside the file ───────────────────────► 416
          │
          ▼
    200 + Cache-Control: max-age=31536000
          X-Content-Type-Options: nosniff
          Content-Type / Content-Length / Accept-Ranges

The year-long max-age is only safe because the store never changes while
the process runs; a redeploy restarts the process and moves both
validators forward.

=============================================================================
CONDITIONAL REQUEST PRECEDENCE (RFC 9110 §13.2.2)
=============================================================================

    1. If-Match             strong comparison; our weak tag only matches "*"
    2. If-Unmodified-Since  only when If-Match is absent
    3. If-None-Match        weak comparison
    4. If-Modified-Since    only when If-None-Match is absent
    5. Range / If-Range     If-Range date must equal Last-Modified exactly

=============================================================================
"""

import logging
from typing import List, Optional, Tuple

from ..content.store import ContentStore, FileRecord
from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus,
    format_http_date, parse_http_date, not_found,
)


logger = logging.getLogger(__name__)

ONE_YEAR = 31536000


def _split_etags(header: str) -> List[str]:
    return [tag.strip() for tag in header.split(",") if tag.strip()]


def _opaque(tag: str) -> str:
    return tag[2:] if tag.startswith("W/") else tag


def etag_matches(header: str, etag: str, weak: bool) -> bool:
    """
    Whether an If-Match / If-None-Match header value matches ``etag``.

    Strong comparison fails whenever either tag is weak; weak comparison
    ignores the W/ prefix on both sides.
    """
    for candidate in _split_etags(header):
        if candidate == "*":
            return True
        if weak:
            if _opaque(candidate) == _opaque(etag):
                return True
        elif not candidate.startswith("W/") and not etag.startswith("W/") and candidate == etag:
            return True
    return False


def parse_range(header: str, size: int) -> Optional[List[Tuple[int, int]]]:
    """
    Parse a ``Range: bytes=...`` header against a representation size.

    Returns:
        None when the header is malformed (and must be ignored), otherwise
        the satisfiable (start, end) pairs, end inclusive. An empty list
        means nothing was satisfiable.

        >>> parse_range("bytes=0-4", 10)
        [(0, 4)]
        >>> parse_range("bytes=-3", 10)
        [(7, 9)]
        >>> parse_range("bytes=20-", 10)
        []
    """
    unit, _, spec = header.partition("=")
    if unit.strip().lower() != "bytes" or not spec:
        return None

    ranges: List[Tuple[int, int]] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        first, sep, last = part.partition("-")
        if not sep:
            return None
        first, last = first.strip(), last.strip()

        if not first:
            # suffix range: the last N bytes
            if not last.isdigit():
                return None
            start, end = max(size - int(last), 0), size - 1
        else:
            if not first.isdigit() or (last and not last.isdigit()):
                return None
            start = int(first)
            end = min(int(last), size - 1) if last else size - 1
            if last and int(last) < start:
                return None

        if start <= end and start < size:
            ranges.append((start, end))
    return ranges


class ContentHandler:
    """
    Serves FileRecords from a ContentStore.

    Usage:
        handler = ContentHandler(store)
        router.add_route("/*path", handler.handle, method="GET")
        router.add_route("/*path", handler.handle, method="HEAD")
    """

    def __init__(self, store: ContentStore, cache_max_age: int = ONE_YEAR):
        self.store = store
        self.cache_max_age = cache_max_age

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        record = self.store.lookup(request.raw_path)
        if record is None:
            logger.debug(f"No content for {request.raw_path}")
            return not_found()

        status = self._evaluate_preconditions(request, record)
        if status is not None:
            return self._validators(record).status(status).build()

        builder = (self._validators(record)
            .content_type(record.content_type)
            .header("Accept-Ranges", "bytes"))

        range_header = request.get_header("range")
        if range_header and self._if_range_allows(request, record):
            ranges = parse_range(range_header, record.size)
            if ranges == []:
                return (builder
                    .status(HTTPStatus.RANGE_NOT_SATISFIABLE)
                    .header("Content-Range", f"bytes */{record.size}")
                    .body(b"")
                    .build())
            if ranges is not None and len(ranges) == 1:
                start, end = ranges[0]
                return (builder
                    .status(HTTPStatus.PARTIAL_CONTENT)
                    .header("Content-Range", f"bytes {start}-{end}/{record.size}")
                    .header("Content-Length", str(end - start + 1))
                    .body(record.content[start:end + 1])
                    .build())
            # Malformed or multi-range requests get the whole file.

        return (builder
            .status(HTTPStatus.OK)
            .header("Content-Length", str(record.size))
            .body(record.content)
            .build())

    def _validators(self, record: FileRecord) -> ResponseBuilder:
        """Headers shared by 200, 206, 304, 412 and 416 responses."""
        return (ResponseBuilder()
            .cache(self.cache_max_age)
            .nosniff()
            .header("Last-Modified", format_http_date(record.last_modified))
            .header("ETag", record.etag))

    def _evaluate_preconditions(self, request: HTTPRequest, record: FileRecord) -> Optional[HTTPStatus]:
        """412, 304 or None (serve normally)."""
        last_modified = record.last_modified

        if_match = request.get_header("if-match")
        if if_match:
            if not etag_matches(if_match, record.etag, weak=False):
                return HTTPStatus.PRECONDITION_FAILED
        else:
            since = parse_http_date(request.get_header("if-unmodified-since"))
            if since is not None and last_modified > since:
                return HTTPStatus.PRECONDITION_FAILED

        if_none_match = request.get_header("if-none-match")
        if if_none_match:
            if etag_matches(if_none_match, record.etag, weak=True):
                return HTTPStatus.NOT_MODIFIED
        else:
            since = parse_http_date(request.get_header("if-modified-since"))
            if since is not None and last_modified <= since:
                return HTTPStatus.NOT_MODIFIED

        return None

    @staticmethod
    def _if_range_allows(request: HTTPRequest, record: FileRecord) -> bool:
        if_range = request.get_header("if-range")
        if not if_range:
            return True
        if if_range.startswith('"') or if_range.startswith("W/"):
            # If-Range needs a strong validator; ours is weak.
            return etag_matches(if_range, record.etag, weak=False)
        return parse_http_date(if_range) == record.last_modified
