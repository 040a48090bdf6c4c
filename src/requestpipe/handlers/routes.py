"""
=============================================================================
URL ROUTER
=============================================================================

The terminal handler of the pipeline. Maps method + path to a route
handler and answers everything it can't map with an abort:

    unknown path              → AbortSignal(404, "Not Found")
    known path, wrong method  → AbortSignal(405, {"error": ..., "allowed": [...]})

Route handlers receive the HttpContext and write to ``ctx.response``.
They may raise AbortSignal themselves, from any depth.

=============================================================================
PATH PATTERNS
=============================================================================

    /users             static, exact match
    /users/:id         one segment captured as ctx.route_params["id"]
    /files/*path       the rest of the path captured as "path"

    "/users/:id"  →  ^/users/(?P<id>[^/]+)$

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional
import re

from ..abort import AbortSignal, Outcome
from ..http.context import HttpContext
from ..http.status_codes import HTTPStatus


RouteHandler = Callable[[HttpContext], Optional[Outcome]]

ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]


@dataclass
class Route:
    """
    A registered route.

        Route(path="/users/:id", method="GET", handler=get_user,
              _pattern=re.compile(r"^/users/(?P<id>[^/]+)$"))
    """

    path: str
    method: Optional[str]            # None = any method
    handler: RouteHandler

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router with dynamic path parameters.

        router = Router()

        @router.get("/orders/:id")
        def get_order(ctx):
            order = load_order(ctx.route_params["id"])   # may abort 404
            ctx.response.content_type = "application/json"
            ctx.response.write(json.dumps(order))

        builder.build(router.handle)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: RouteHandler,
        method: Optional[str] = None,
    ) -> Route:
        """Register ``handler`` for ``method`` (None for any) on ``path``."""
        pattern = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            _pattern=pattern,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> re.Pattern:
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                regex_parts.append(f"(?P<{segment[1:]}>[^/]+)")
            elif segment.startswith("*"):
                regex_parts.append(f"(?P<{segment[1:] or 'wildcard'}>.*)")
                break  # wildcard consumes the rest
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            regex_parts.append("/")  # root route
        regex_parts.append("$")
        return re.compile("".join(regex_parts))

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    @staticmethod
    def _normalize(path: str) -> str:
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First registered route matching method and path, or None."""
        path = self._normalize(path)
        for route in self._routes:
            if route.method and route.method != method.upper():
                continue
            match = route._pattern.match(path) if route._pattern else None
            if match:
                return RouteMatch(route=route, params=match.groupdict())
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for ``path``; listed in the 405 body."""
        path = self._normalize(path)
        methods = set()
        for route in self._routes:
            if route._pattern and route._pattern.match(path):
                if route.method is None:
                    return list(ALL_METHODS)
                methods.add(route.method)
        return sorted(methods)

    def handle(self, ctx: HttpContext) -> Optional[Outcome]:
        """
        Dispatch the request. Use as the pipeline terminal.

        Raises:
            AbortSignal: 404 for unknown paths, 405 for unregistered methods.
        """
        request = ctx.request
        match = self.match(request.method, request.path)

        if match:
            ctx.route_params = match.params
            return match.route.handler(ctx)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            raise AbortSignal(
                HTTPStatus.METHOD_NOT_ALLOWED,
                {"error": "Method Not Allowed", "allowed": allowed},
            )

        raise AbortSignal(HTTPStatus.NOT_FOUND, "Not Found")

    # =========================================================================
    # DECORATORS
    # =========================================================================

    def route(
        self,
        path: str,
        method: Optional[str] = None,
    ) -> Callable[[RouteHandler], RouteHandler]:
        """
        Decorator to register a route handler.

            @router.route("/ping")
            def ping(ctx):
                ctx.response.write("pong")
        """
        def decorator(handler: RouteHandler) -> RouteHandler:
            self.add_route(path, handler, method)
            return handler
        return decorator

    def get(self, path: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route(path, "GET")

    def post(self, path: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route(path, "POST")

    def put(self, path: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route(path, "PUT")

    def delete(self, path: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route(path, "DELETE")

    def patch(self, path: str) -> Callable[[RouteHandler], RouteHandler]:
        return self.route(path, "PATCH")

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)
