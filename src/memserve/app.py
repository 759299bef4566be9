"""
=============================================================================
APPLICATION ASSEMBLY
=============================================================================

Builds the two listeners from a ServerConfig and runs them.

    run(config)
        │
        ├──► configure_logging()             stderr + optional access log file
        ├──► open_content_store(web_root)    fatal on error, before any socket
        │
        ├──► metrics server   (daemon thread)     :metrics_port
        │        GET /metrics   GET /healthz   GET /version
        │
        └──► content server   (main thread)       :port
                 Compression → Metrics → AccessLog → router
                     GET|HEAD /*path → ContentHandler
                     GET /metrics    (metrics_on_main)

The content server owns the main thread so it receives SIGTERM/SIGINT;
when it stops, run() stops the metrics server too.

=============================================================================
"""

import logging
import os
import threading
import time
from typing import Optional

from . import __version__
from .config import ServerConfig
from .content import ContentStore, open_content_store
from .handlers import BuildInfo, ContentHandler, HealthHandler, MetricsHandler
from .middleware import (
    AccessLogMiddleware,
    CompressionMiddleware,
    MetricsMiddleware,
    RequestMetrics,
)
from .server import HTTPServer


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(config: ServerConfig) -> None:
    """
    Configure the root logger and the access log.

    Access lines always reach stderr through the root handler; with
    ``access_log_path`` set they are also appended to that file as bare
    combined-format lines.
    """
    level = getattr(logging, config.effective_log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    logging.getLogger("memserve").setLevel(level)

    access_logger = logging.getLogger("memserve.access")
    access_logger.setLevel(logging.INFO)

    if config.access_log_path:
        directory = os.path.dirname(config.access_log_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(config.access_log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        access_logger.addHandler(file_handler)
        logger.info(f"Writing access log to {config.access_log_path}")


def create_content_app(
    config: ServerConfig,
    store: ContentStore,
    metrics: RequestMetrics,
    port: Optional[int] = None,
) -> HTTPServer:
    """The content listener: files from ``store`` behind the middleware chain."""
    server = HTTPServer(config, port=port, name="http")

    # First added is outermost.
    server.use(CompressionMiddleware(level=config.compression_level))
    server.use(MetricsMiddleware(metrics))
    server.use(AccessLogMiddleware())

    if config.metrics_on_main:
        server.router.add_route("/metrics", MetricsHandler(metrics.registry).handle, method="GET")

    content = ContentHandler(store, cache_max_age=config.cache_max_age)
    server.router.add_route("/*path", content.handle, method="GET")
    server.router.add_route("/*path", content.handle, method="HEAD")
    return server


def create_metrics_app(
    config: ServerConfig,
    metrics: RequestMetrics,
    port: Optional[int] = None,
) -> HTTPServer:
    """The metrics listener: /metrics, /healthz and /version."""
    server = HTTPServer(
        config,
        port=port if port is not None else config.metrics_port,
        name="metrics",
    )

    health = HealthHandler(BuildInfo(
        version=__version__,
        git_commit=config.git_commit,
        build_time=config.build_time,
    ))
    server.router.add_route("/metrics", MetricsHandler(metrics.registry).handle, method="GET")
    server.router.add_route("/healthz", health.healthz, method="GET")
    server.router.add_route("/version", health.version, method="GET")
    return server


def start_in_thread(server: HTTPServer, timeout: float = 5.0) -> threading.Thread:
    """
    Run ``server.serve_forever()`` on a daemon thread and wait until it
    is listening.

    Raises:
        OSError: The server did not come up (typically a bind failure).
    """
    failure: list[OSError] = []

    def target():
        try:
            server.serve_forever()
        except OSError as e:
            failure.append(e)

    thread = threading.Thread(target=target, name=f"{server.name}-server", daemon=True)
    thread.start()

    deadline = time.monotonic() + timeout
    while not server.wait_until_ready(0.05):
        if not thread.is_alive():
            break
        if time.monotonic() > deadline:
            server.shutdown()
            raise OSError(f"{server.name} server did not start within {timeout}s")

    if failure:
        raise failure[0]
    return thread


def run(config: ServerConfig) -> None:
    """
    Load the content and serve until interrupted.

    Raises:
        ContentLoadError: The web root could not be loaded.
        OSError: A port could not be bound.
    """
    config.validate()

    store = open_content_store(config.web_root, use_memory=config.use_memory)
    metrics = RequestMetrics(include_runtime=True)

    metrics_server = create_metrics_app(config, metrics)
    content_server = create_content_app(config, store, metrics)

    start_in_thread(metrics_server)
    try:
        content_server.serve_forever()
    finally:
        metrics_server.shutdown()
