"""
Unit tests for the access log middleware.
"""

import logging
import re

import pytest

from memserve.http import HTTPRequest, not_found, ok
from memserve.middleware.logging import (
    AccessLogMiddleware,
    RequestLog,
    client_ip,
    sanitize_field,
)


LINE_PATTERN = re.compile(
    r'^(?P<ip>\S+) - - \[(?P<time>\d{2}/\w{3}/\d{4}:\d{2}:\d{2}:\d{2} [+-]\d{4})\] '
    r'"(?P<request>[^"]*)" (?P<status>\d{3}) (?P<size>\d+) "(?P<referer>[^"]*)" "(?P<ua>[^"]*)"$'
)


def make_request(target: str = "/index.html", **headers) -> HTTPRequest:
    return HTTPRequest(
        method="GET",
        path=target.split("?")[0],
        target=target,
        headers={name.replace("_", "-").lower(): value for name, value in headers.items()},
        client_address=("10.0.0.5", 51234),
    )


class TestClientIP:
    """Tests for client address resolution."""

    def test_cf_connecting_ip_first(self):
        request = make_request(cf_connecting_ip="203.0.113.7", x_forwarded_for="198.51.100.1")
        assert client_ip(request) == "203.0.113.7"

    def test_first_forwarded_hop(self):
        request = make_request(x_forwarded_for="198.51.100.1, 10.0.0.1")
        assert client_ip(request) == "198.51.100.1"

    def test_socket_address_fallback(self):
        assert client_ip(make_request()) == "10.0.0.5"


class TestRequestLog:
    """Tests for the combined log line."""

    def test_to_text(self):
        entry = RequestLog(
            client_ip="203.0.113.7",
            timestamp="19/Oct/2026:10:55:36 +0000",
            method="GET",
            uri="/post/?page=2",
            protocol="HTTP/1.1",
            status_code=200,
            content_length=5120,
            referer="https://example.com/",
            user_agent="curl/8.4.0",
        )
        assert entry.to_text() == (
            '203.0.113.7 - - [19/Oct/2026:10:55:36 +0000] "GET /post/?page=2 HTTP/1.1" '
            '200 5120 "https://example.com/" "curl/8.4.0"'
        )

    def test_control_characters_stripped(self):
        assert sanitize_field("a\r\nb\tc\x00\x7f") == "abc"


class TestAccessLogMiddleware:
    """Tests for AccessLogMiddleware."""

    def test_logs_one_line(self, caplog):
        middleware = AccessLogMiddleware()
        request = make_request("/index.html?x=1", referer="https://example.com/", user_agent="pytest")

        with caplog.at_level(logging.INFO, logger="memserve.access"):
            middleware(request, lambda r: ok("hello"))

        records = [r for r in caplog.records if r.name == "memserve.access"]
        assert len(records) == 1
        match = LINE_PATTERN.match(records[0].getMessage())
        assert match is not None
        assert match["ip"] == "10.0.0.5"
        assert match["request"] == "GET /index.html?x=1 HTTP/1.1"
        assert match["status"] == "200"
        assert match["size"] == "5"
        assert match["referer"] == "https://example.com/"
        assert match["ua"] == "pytest"

    def test_logs_misses(self, caplog):
        middleware = AccessLogMiddleware()
        with caplog.at_level(logging.INFO, logger="memserve.access"):
            middleware(make_request("/nope"), lambda r: not_found())

        assert '"GET /nope HTTP/1.1" 404 19' in caplog.text

    def test_head_logs_zero_bytes(self, caplog):
        middleware = AccessLogMiddleware()
        request = HTTPRequest(method="HEAD", path="/index.html")
        response = ok("hello")
        response.headers["Content-Length"] = "5"

        with caplog.at_level(logging.INFO, logger="memserve.access"):
            middleware(request, lambda r: response)

        assert '"HEAD /index.html HTTP/1.1" 200 0 ' in caplog.text

    def test_forged_line_break_stays_on_one_line(self, caplog):
        middleware = AccessLogMiddleware()
        request = make_request(user_agent='x\r\n1.2.3.4 - - [fake] "GET /admin HTTP/1.1" 200 0')

        with caplog.at_level(logging.INFO, logger="memserve.access"):
            middleware(request, lambda r: ok("hello"))

        message = caplog.records[-1].getMessage()
        assert "\n" not in message and "\r" not in message

    def test_failure_logged_and_reraised(self, caplog):
        def boom(request):
            raise RuntimeError("boom")

        middleware = AccessLogMiddleware()
        with caplog.at_level(logging.INFO, logger="memserve.access"):
            with pytest.raises(RuntimeError):
                middleware(make_request("/x"), boom)

        assert any(r.levelno == logging.ERROR and "RuntimeError" in r.getMessage() for r in caplog.records)
