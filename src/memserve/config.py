"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All runtime settings in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line arguments                                         │
    │      └── memserve --port 3000                                       │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── PORT=3000 memserve                                         │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    HOST            bind address                 0.0.0.0
    PORT            content port                 8080
    METRICS_PORT    metrics/health port          9090
    WEBROOT         directory to serve           /app/public
    USE_MEMORY      preload into memory          true
    DEBUG           debug logging                false
    METRICS_ON_MAIN also serve /metrics on PORT  true
    LOG_FILE_PATH   access log file              (stderr only)
    LOG_LEVEL       root log level               INFO
    GIT_COMMIT      reported by /version         MISSING GIT COMMIT
    BUILD_TIME      reported by /version         MISSING BUILD TIME

A value that does not parse is logged and the default is used; the
server still starts. Booleans accept 1/t/true and 0/f/false in any of
the usual capitalizations.

=============================================================================
"""

import os
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")

_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_bool(value: str) -> bool:
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def _env(
    environ: Mapping[str, str],
    name: str,
    default: T,
    parse: Callable[[str], T],
) -> T:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return parse(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}, using default {default!r}")
        return default


@dataclass
class ServerConfig:
    """
    Configuration for the content server and its metrics listener.

    ─────────────────────────────────────────────────────────────────────
    GROUPS
    ─────────────────────────────────────────────────────────────────────
    NETWORK     host, port, metrics_port, backlog, buffer_size, timeout
    HTTP        keep_alive, keep_alive_timeout, max_request_size
    CONTENT     web_root, use_memory, cache_max_age, compression_level
    METRICS     metrics_on_main
    LOGGING     debug, log_level, access_log_path
    IDENTITY    server_name, git_commit, build_time
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8080
    metrics_port: int = 9090
    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024  # 10 MB

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────
    web_root: str = "/app/public"

    use_memory: bool = True
    """Preload the tree at startup. False reads from disk per request."""

    cache_max_age: int = 31536000
    compression_level: int = 6

    # ─────────────────────────────────────────────────────────────────────
    # METRICS
    # ─────────────────────────────────────────────────────────────────────
    metrics_on_main: bool = True
    """Also answer GET /metrics on the content port."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────
    debug: bool = False
    log_level: str = "INFO"
    access_log_path: Optional[str] = None

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────
    server_name: str = "memserve/1.0"
    git_commit: str = "MISSING GIT COMMIT"
    build_time: str = "MISSING BUILD TIME"

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Build a configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests).
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            host=env.get("HOST") or defaults.host,
            port=_env(env, "PORT", defaults.port, int),
            metrics_port=_env(env, "METRICS_PORT", defaults.metrics_port, int),
            web_root=env.get("WEBROOT") or defaults.web_root,
            use_memory=_env(env, "USE_MEMORY", defaults.use_memory, parse_bool),
            debug=_env(env, "DEBUG", defaults.debug, parse_bool),
            metrics_on_main=_env(env, "METRICS_ON_MAIN", defaults.metrics_on_main, parse_bool),
            access_log_path=env.get("LOG_FILE_PATH") or None,
            log_level=(env.get("LOG_LEVEL") or defaults.log_level).upper(),
            git_commit=env.get("GIT_COMMIT") or defaults.git_commit,
            build_time=env.get("BUILD_TIME") or defaults.build_time,
        )

    def validate(self) -> None:
        """Raise ValueError on the first setting that cannot work."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not 0 <= self.metrics_port < 65536:
            raise ValueError(f"Invalid metrics port: {self.metrics_port}. Must be 0-65535.")

        if self.port and self.port == self.metrics_port:
            raise ValueError(f"port and metrics_port must differ (both {self.port})")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be positive")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be positive")

        if not 1 <= self.compression_level <= 9:
            raise ValueError(f"Invalid compression level: {self.compression_level}. Must be 1-9.")

        if self.cache_max_age < 0:
            raise ValueError("cache_max_age must not be negative")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")
