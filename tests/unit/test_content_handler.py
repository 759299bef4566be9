"""
Unit tests for the content handler: lookup, caching headers, conditional
and range requests.
"""

import pytest

from memserve.handlers.content import ContentHandler, ONE_YEAR, etag_matches, parse_range
from memserve.http import HTTPRequest, HTTPStatus

from conftest import INDEX_HTML, POST_HTML, STYLE_CSS


LAST_MODIFIED = "Tue, 02 Jan 2024 03:04:05 GMT"
ETAG = 'W/"1704164645"'


def make_request(path: str, method: str = "GET", **headers) -> HTTPRequest:
    return HTTPRequest(
        method=method,
        path=path,
        headers={name.replace("_", "-").lower(): value for name, value in headers.items()},
        target=path,
    )


@pytest.fixture
def handler(store) -> ContentHandler:
    return ContentHandler(store)


class TestServing:
    """Plain GET/HEAD responses."""

    def test_root_serves_index(self, handler):
        response = handler.handle(make_request("/"))
        assert response.status == HTTPStatus.OK
        assert response.body == INDEX_HTML
        assert response.get_header("Content-Type") == "text/html; charset=utf-8"

    def test_directory_serves_index(self, handler):
        assert handler.handle(make_request("/post/")).body == POST_HTML
        assert handler.handle(make_request("/post")).body == POST_HTML

    def test_caching_headers(self, handler):
        response = handler.handle(make_request("/css/style.css"))
        assert response.get_header("Cache-Control") == f"max-age={ONE_YEAR}"
        assert response.get_header("X-Content-Type-Options") == "nosniff"
        assert response.get_header("Last-Modified") == LAST_MODIFIED
        assert response.get_header("ETag") == ETAG
        assert response.get_header("Content-Length") == str(len(STYLE_CSS))
        assert response.get_header("Accept-Ranges") == "bytes"

    def test_custom_max_age(self, store):
        response = ContentHandler(store, cache_max_age=60).handle(make_request("/"))
        assert response.get_header("Cache-Control") == "max-age=60"

    def test_missing_path_is_404(self, handler):
        response = handler.handle(make_request("/nope"))
        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"404 page not found\n"

    def test_directory_without_index_is_404(self, handler):
        assert handler.handle(make_request("/css/")).status == HTTPStatus.NOT_FOUND

    def test_head_carries_full_length(self, handler):
        """HEAD gets the GET headers; the server drops the body on the wire."""
        response = handler.handle(make_request("/", method="HEAD"))
        assert response.get_header("Content-Length") == str(len(INDEX_HTML))

    def test_uses_raw_path(self, handler):
        request = HTTPRequest(method="GET", path="/post", target="/post/?x=1")
        assert request.raw_path == "/post/"
        assert handler.handle(request).body == POST_HTML


class TestConditionalRequests:
    """If-None-Match, If-Modified-Since, If-Match, If-Unmodified-Since."""

    def test_if_none_match_hit(self, handler):
        response = handler.handle(make_request("/", if_none_match=ETAG))
        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.body == b""
        assert response.get_header("ETag") == ETAG
        assert response.get_header("Cache-Control") == f"max-age={ONE_YEAR}"

    def test_if_none_match_ignores_weakness(self, handler):
        response = handler.handle(make_request("/", if_none_match='"1704164645"'))
        assert response.status == HTTPStatus.NOT_MODIFIED

    def test_if_none_match_miss(self, handler):
        response = handler.handle(make_request("/", if_none_match='W/"1"'))
        assert response.status == HTTPStatus.OK

    def test_if_modified_since_equal(self, handler):
        response = handler.handle(make_request("/", if_modified_since=LAST_MODIFIED))
        assert response.status == HTTPStatus.NOT_MODIFIED

    def test_if_modified_since_older(self, handler):
        response = handler.handle(make_request("/", if_modified_since="Mon, 01 Jan 2024 00:00:00 GMT"))
        assert response.status == HTTPStatus.OK

    def test_if_none_match_takes_precedence(self, handler):
        """A non-matching tag wins over a satisfied If-Modified-Since."""
        response = handler.handle(make_request(
            "/", if_none_match='W/"1"', if_modified_since=LAST_MODIFIED,
        ))
        assert response.status == HTTPStatus.OK

    def test_invalid_date_ignored(self, handler):
        response = handler.handle(make_request("/", if_modified_since="yesterday"))
        assert response.status == HTTPStatus.OK

    def test_if_match_weak_tag_fails(self, handler):
        """Strong comparison never matches a weak tag."""
        response = handler.handle(make_request("/", if_match=ETAG))
        assert response.status == HTTPStatus.PRECONDITION_FAILED
        assert response.get_header("Cache-Control") == f"max-age={ONE_YEAR}"
        assert response.get_header("X-Content-Type-Options") == "nosniff"

    def test_if_match_star(self, handler):
        assert handler.handle(make_request("/", if_match="*")).status == HTTPStatus.OK

    def test_if_unmodified_since_older(self, handler):
        response = handler.handle(make_request("/", if_unmodified_since="Mon, 01 Jan 2024 00:00:00 GMT"))
        assert response.status == HTTPStatus.PRECONDITION_FAILED


class TestRangeRequests:
    """Single byte ranges."""

    def test_single_range(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=10-19"))
        assert response.status == HTTPStatus.PARTIAL_CONTENT
        assert response.body == bytes(range(10, 20))
        assert response.get_header("Content-Range") == "bytes 10-19/256"
        assert response.get_header("Content-Length") == "10"

    def test_suffix_range(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=-6"))
        assert response.body == bytes(range(250, 256))

    def test_unsatisfiable_range(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=500-"))
        assert response.status == HTTPStatus.RANGE_NOT_SATISFIABLE
        assert response.get_header("Content-Range") == "bytes */256"

    def test_malformed_range_ignored(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=abc"))
        assert response.status == HTTPStatus.OK
        assert len(response.body) == 256

    def test_multiple_ranges_served_whole(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=0-1,5-6"))
        assert response.status == HTTPStatus.OK

    def test_if_range_date_match(self, handler):
        response = handler.handle(make_request("/data.bin", range="bytes=0-0", if_range=LAST_MODIFIED))
        assert response.status == HTTPStatus.PARTIAL_CONTENT

    def test_if_range_stale(self, handler):
        response = handler.handle(make_request(
            "/data.bin", range="bytes=0-0", if_range="Mon, 01 Jan 2024 00:00:00 GMT",
        ))
        assert response.status == HTTPStatus.OK


class TestEtagMatches:
    """Tests for etag_matches()."""

    def test_weak_comparison(self):
        assert etag_matches('W/"1"', 'W/"1"', weak=True)
        assert etag_matches('"1"', 'W/"1"', weak=True)

    def test_strong_comparison(self):
        assert etag_matches('"1"', '"1"', weak=False)
        assert not etag_matches('W/"1"', 'W/"1"', weak=False)

    def test_list(self):
        assert etag_matches('"a", W/"1"', 'W/"1"', weak=True)


class TestParseRange:
    """Tests for parse_range()."""

    @pytest.mark.parametrize("header,expected", [
        ("bytes=0-4", [(0, 4)]),
        ("bytes=5-", [(5, 9)]),
        ("bytes=-3", [(7, 9)]),
        ("bytes=0-100", [(0, 9)]),
        ("bytes=0-1, 4-5", [(0, 1), (4, 5)]),
        ("bytes=20-", []),
    ])
    def test_valid(self, header, expected):
        assert parse_range(header, 10) == expected

    @pytest.mark.parametrize("header", ["items=0-1", "bytes=", "bytes=a-b", "bytes=5-2", "bytes=1"])
    def test_malformed(self, header):
        assert parse_range(header, 10) is None
