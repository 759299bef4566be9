"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler. memserve registers very few routes:

    CONTENT LISTENER                      METRICS LISTENER
    ────────────────                      ────────────────
    GET  /metrics   (optional)            GET /metrics
    GET  /*path  ─┐                       GET /healthz
    HEAD /*path  ─┴─► ContentHandler      GET /version

Routes are tried in registration order, so the exact "/metrics" route
must be added before the catch-all.

=============================================================================
PATTERN SYNTAX
=============================================================================

    /metrics          static segment, exact match
    /posts/:slug      one path segment captured as "slug"
    /*path            the rest of the path (may be empty) captured as "path"

    "/*path" compiles to ^/(?P<path>.*)$ and so also matches "/".

=============================================================================
"""

from dataclasses import dataclass, field
import logging
import re
from typing import Callable, Optional, Dict, List

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A URL pattern bound to a handler for one method (or any method)."""

    path: str
    method: Optional[str]
    handler: Handler
    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    First-match router with ``:param`` and ``*wildcard`` segments.

        router = Router()

        @router.get("/healthz")
        def healthz(request):
            return ok("ok")

        router.add_route("/*path", content.handle, method="GET")
    """

    # Methods reported in Allow when a route accepts any method.
    ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"]

    def __init__(self):
        self._routes: List[Route] = []

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def add_route(self, path: str, handler: Handler, method: Optional[str] = None) -> Route:
        pattern, param_names = self._compile_pattern(path)
        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        logger.debug(f"Registered route {route.method or '*'} {path}")
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern to an anchored regex.

            "/posts/:slug"  →  ^/posts/(?P<slug>[^/]+)$
            "/*path"        →  ^/(?P<path>.*)$
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue
            regex_parts.append("/")
            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break  # wildcard consumes the rest
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # the root route "/"
        regex_parts.append("$")
        # DOTALL: a decoded path may hold a newline the content store strips.
        return re.compile("".join(regex_parts), re.DOTALL), param_names

    @staticmethod
    def _normalize(path: str) -> str:
        # Trailing slashes are ignored for matching; handlers that care
        # (the content handler does) read request.raw_path instead.
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        path = self._normalize(path)
        for route in self._routes:
            if route.method and route.method != method.upper():
                continue
            if route._pattern:
                found = route._pattern.match(path)
                if found:
                    return RouteMatch(route=route, params=found.groupdict())
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods that have a route matching ``path`` (for the Allow header)."""
        path = self._normalize(path)
        methods = set()
        for route in self._routes:
            if route._pattern and route._pattern.match(path):
                if route.method is None:
                    return list(self.ALL_METHODS)
                methods.add(route.method)
        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request: handler on match, 405 when the path exists
        under other methods, otherwise 404.
        """
        found = self.match(request.method, request.path)
        if found:
            request.path_params = found.params
            return found.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return not_found()

    # ─────────────────────────────────────────────────────────────────────
    # DECORATORS
    # ─────────────────────────────────────────────────────────────────────

    def route(self, path: str, method: Optional[str] = None) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "GET")

    def head(self, path: str) -> Callable[[Handler], Handler]:
        return self.route(path, "HEAD")
