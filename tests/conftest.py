"""
pytest configuration and fixtures.
"""

import socket
import threading
from datetime import datetime, timezone
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from memserve import HTTPServer, ServerConfig
from memserve.app import create_content_app, create_metrics_app
from memserve.content import load_content_store
from memserve.middleware import RequestMetrics


LOADED_AT = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

INDEX_HTML = b"<!DOCTYPE html><html><body>home</body></html>"
POST_HTML = b"<html><body>a post about caching</body></html>"
STYLE_CSS = b"body { color: #333; }\n" * 40


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /blog/post/?utm_source=feed HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept-Encoding: gzip\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """
    A small site tree:

        index.html
        css/style.css
        post/index.html
        about/index.html
        empty.txt
        data.bin
    """
    root = tmp_path / "public"
    (root / "css").mkdir(parents=True)
    (root / "post").mkdir()
    (root / "about").mkdir()

    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "css" / "style.css").write_bytes(STYLE_CSS)
    (root / "post" / "index.html").write_bytes(POST_HTML)
    (root / "about" / "index.html").write_bytes(b"<html>about</html>")
    (root / "empty.txt").write_bytes(b"")
    (root / "data.bin").write_bytes(bytes(range(256)))
    return root


@pytest.fixture
def store(site_root: Path):
    """The site tree loaded into memory at a fixed instant."""
    return load_content_store(site_root, clock=lambda: LOADED_AT)


@pytest.fixture
def registry() -> CollectorRegistry:
    """A fresh registry, isolated from the process-wide default."""
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> RequestMetrics:
    return RequestMetrics(registry=registry)


@pytest.fixture
def config() -> ServerConfig:
    """Test configuration: loopback, OS-assigned ports, short timeouts."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        metrics_port=0,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class BackgroundServer:
    """Runs an HTTPServer on a daemon thread for the duration of a test."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.port

    def start(self):
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)


@pytest.fixture
def content_server(config, store, metrics) -> Generator[BackgroundServer, None, None]:
    """The content listener serving ``site_root`` from memory."""
    srv = BackgroundServer(create_content_app(config, store, metrics))
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def metrics_server(config, metrics) -> Generator[BackgroundServer, None, None]:
    """The metrics listener sharing ``metrics`` with ``content_server``."""
    srv = BackgroundServer(create_metrics_app(config, metrics, port=0))
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep deployment variables from leaking into from_env() tests."""
    for name in ("HOST", "PORT", "METRICS_PORT", "WEBROOT", "USE_MEMORY", "DEBUG",
                 "METRICS_ON_MAIN", "LOG_FILE_PATH", "LOG_LEVEL", "GIT_COMMIT", "BUILD_TIME"):
        monkeypatch.delenv(name, raising=False)
