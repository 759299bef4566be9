"""
=============================================================================
MEMSERVE
=============================================================================

A static site server that loads a directory tree into memory at startup
and serves it over HTTP/1.1 with long-lived caching headers, gzip and
Prometheus metrics.

    memserve/
    ├── config.py        ServerConfig (env + CLI settings)
    ├── app.py           assembles and runs the two listeners
    ├── server.py        HTTPServer: keep-alive loop, thread per connection
    ├── core/            TCP listener and client connection
    ├── http/            request parsing, responses, routing, MIME types
    ├── content/         Content Store and path normalization
    ├── middleware/      gzip, Prometheus metrics, access log
    └── handlers/        content, /metrics, /healthz, /version

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import HTTPServer

__all__ = ["HTTPServer", "ServerConfig", "__version__"]
