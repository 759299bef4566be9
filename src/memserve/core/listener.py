"""
=============================================================================
TCP LISTENER
=============================================================================

Owns one listening socket and hands every accepted client to a callback.

    SocketServer.start(callback)          blocks until shutdown()
        │
        ├──► socket() + SO_REUSEADDR + TCP_NODELAY
        ├──► bind((host, port))           port 0 picks a free port
        ├──► listen(backlog)
        ├──► ready.set()                  .port is now the bound port
        ├──► SIGTERM / SIGINT → shutdown()   (main thread only)
        │
        └──► while running:
                 accept()                 1s timeout so shutdown is noticed
                 callback(Connection(...))

The content server and the metrics server each run one SocketServer.
Only the one started from the main thread can install signal handlers;
Python refuses signal.signal() anywhere else.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Args:
        config: Timeouts, backlog and buffer sizes.
        host: Interface to bind. Defaults to ``config.host``.
        port: Port to bind. Defaults to ``config.port``.
        name: Label used in log lines ("http", "metrics").
    """

    def __init__(
        self,
        config: ServerConfig,
        host: Optional[str] = None,
        port: Optional[int] = None,
        name: str = "http",
    ):
        self.config = config
        self.host = host if host is not None else config.host
        self.requested_port = port if port is not None else config.port
        self.name = name

        self._socket: Optional[socket.socket] = None
        self._bound_port: Optional[int] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self.ready = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def port(self) -> int:
        """The bound port once listening, else the configured one."""
        return self._bound_port if self._bound_port is not None else self.requested_port

    @property
    def address(self) -> Tuple[str, int]:
        return (self.host, self.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        # accept() wakes up once a second to check _running.
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        if threading.current_thread() is not threading.main_thread():
            logger.debug(f"[{self.name}] Not on the main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and accept until shutdown().

        Raises:
            OSError: The address could not be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.host, self.requested_port))
        except OSError as e:
            logger.error(f"[{self.name}] Failed to bind to {self.host}:{self.requested_port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._bound_port = self._socket.getsockname()[1]

        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        logger.info(f"[{self.name}] Listening on {self.host}:{self.port}")
        self.ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"[{self.name}] Accept error: {e}")
                break

            logger.debug(f"[{self.name}] Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Safe to call more than once and from any thread."""
        if self._running:
            logger.info(f"[{self.name}] Shutting down listener...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self.ready.clear()
        logger.info(f"[{self.name}] Listener stopped")

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        return self._shutdown_event.wait(timeout)
