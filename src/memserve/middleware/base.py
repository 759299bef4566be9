"""
=============================================================================
MIDDLEWARE FOUNDATION
=============================================================================

A middleware wraps the rest of the chain and sees every request on the
way in and every response on the way out:

    def __call__(self, request, next):
        ...before...
        response = next(request)
        ...after...
        return response

=============================================================================
THE CONTENT CHAIN
=============================================================================

    pipeline.add(CompressionMiddleware())   # first added = outermost
    pipeline.add(MetricsMiddleware(...))
    pipeline.add(AccessLogMiddleware())

        ┌──────────────────────────────────────────────────────────┐
        │ Compression                                              │
        │  ┌────────────────────────────────────────────────────┐  │
        │  │ Metrics (times everything below)                   │  │
        │  │  ┌──────────────────────────────────────────────┐  │  │
        │  │  │ Access log (status + bytes from the handler) │  │  │
        │  │  │  ┌────────────────────────────────────────┐  │  │  │
        │  │  │  │ router → ContentHandler                │  │  │  │
        │  │  │  └────────────────────────────────────────┘  │  │  │
        │  │  └──────────────────────────────────────────────┘  │  │
        │  └────────────────────────────────────────────────────┘  │
        └──────────────────────────────────────────────────────────┘

The access log sits innermost, so it records the size the handler
produced. Gzip runs after the log line is written.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, Iterator, List
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

# The next middleware, or the final handler.
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """Base class for one cross-cutting behavior around the handler chain."""

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Must call ``next(request)`` (unless short-circuiting) and return
        a response.
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered list of middleware that can wrap a handler.

        pipeline = MiddlewarePipeline()
        pipeline.use(CompressionMiddleware(), MetricsMiddleware(m), AccessLogMiddleware())
        handler = pipeline.wrap(router.handle)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around ``handler``.

        Given [A, B, C] the result is A(B(C(handler))): wrapping happens
        in reverse so the first-added middleware is outermost.
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)
