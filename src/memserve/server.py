"""
=============================================================================
HTTP/1.1 SERVER
=============================================================================

Ties a listener, a router and a middleware pipeline together and runs
the keep-alive loop for each client on its own thread.

    SocketServer ──accept──► _handle_connection(conn)
                                   │
                                   └──► Thread(_process_connection)
                                              │
                                              ▼
                              ┌──────────── loop ────────────┐
                              │ conn.read_request()          │
                              │ RequestParser.parse()        │
                              │ handler(request)             │  middleware + router
                              │ conn.send_response()         │
                              └── until close / error ───────┘

One thread per connection: the store is read-only after startup, so
connection threads share nothing but the Prometheus collectors, which
lock internally.

=============================================================================
ERROR MAPPING
=============================================================================

    read timeout before the first request      408, close
    request larger than max_request_size       413, close
    HTTPParseError                             its status (400/405/505), close
    handler raised                             500, connection stays usable
    send failed / client reset                 close, nothing else

=============================================================================
"""

import logging
import threading
from typing import Optional, Callable, Set

from .config import ServerConfig
from .core import SocketServer, Connection, RequestTooLarge
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    HTTP/1.1 server for one listening port.

    Usage:
        server = HTTPServer(config, port=config.metrics_port, name="metrics")
        server.router.add_route("/healthz", health.healthz, method="GET")
        server.use(AccessLogMiddleware())
        server.serve_forever()

    Args:
        config: Shared server configuration. Validated here.
        host: Bind address override (defaults to ``config.host``).
        port: Port override (defaults to ``config.port``). 0 picks a free port.
        name: Label for log lines and thread names.
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        name: str = "http",
    ):
        self.config = config or ServerConfig()
        self.config.validate()
        self.name = name

        self._socket_server = SocketServer(self.config, host=host, port=port, name=name)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._running = False

        self._workers: Set[threading.Thread] = set()
        self._workers_lock = threading.Lock()

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Append middleware. The first one added is the outermost."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def middleware(self) -> MiddlewarePipeline:
        return self._middleware

    @property
    def port(self) -> int:
        return self._socket_server.port

    @property
    def is_running(self) -> bool:
        return self._running

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening (for tests and the launcher)."""
        return self._socket_server.ready.wait(timeout)

    def serve_forever(self):
        """
        Listen and serve until shutdown() or SIGTERM/SIGINT.

        Raises:
            OSError: The port could not be bound.
        """
        self._running = True
        self._handler = self._middleware.wrap(self._router.handle)

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Stop accepting connections. Safe to call from any thread."""
        self._running = False
        self._socket_server.shutdown()

    def _shutdown(self, timeout: float = 5.0):
        logger.info(f"[{self.name}] Shutting down server...")
        self._running = False

        with self._workers_lock:
            workers = list(self._workers)
        for worker in workers:
            worker.join(timeout)

        logger.info(f"[{self.name}] Server stopped")

    def _handle_connection(self, conn: Connection):
        worker = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"{self.name}-{conn.id}",
            daemon=True,
        )
        with self._workers_lock:
            self._workers.add(worker)
        worker.start()

    def _process_connection(self, conn: Connection):
        try:
            with conn:
                self._serve_connection(conn)
        finally:
            with self._workers_lock:
                self._workers.discard(threading.current_thread())

    def _serve_connection(self, conn: Connection):
        while self._running:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                return
            except RequestTooLarge as e:
                logger.warning(f"[{conn.id}] {e}")
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                return
            except OSError as e:
                logger.debug(f"[{conn.id}] Read failed: {e}")
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.debug(f"[{conn.id}] Bad request: {e}")
                self._send_error(conn, HTTPStatus(e.status_code))
                return

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()

            keep_alive = request.is_keep_alive and self.config.keep_alive and self._running
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive",
                    f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            response_bytes = response.to_bytes(
                self.config.server_name,
                include_body=not request.is_head,
            )
            if not conn.send_response(response_bytes):
                return

            if not keep_alive:
                return

            conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus):
        response = error_response(status)
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
