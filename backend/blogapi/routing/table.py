"""
Route registration.

The table is built once at startup and frozen before the first request:

    table = RouteTable()
    table.get("/api/posts/tags", list_tags)
    table.get("/api/posts/{slug}", show_post)

    def admin(t: RouteTable) -> None:
        t.get("", list_admin_posts)
        t.put("/{id:\\d+}", update_post)

    table.group("/api/admin/posts", [auth], admin)
    table.freeze()

Matching walks routes in registration order and the first hit wins, so
literal routes must be registered before parameterized siblings that would
otherwise capture them (`/api/posts/tags` before `/api/posts/{slug}`).
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from blogapi.exceptions import RouteConfigurationError
from blogapi.routing.messages import HttpResponse, IncomingRequest
from blogapi.routing.pattern import CompiledPattern, compile_template, split_segments

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[HttpResponse]]
Middleware = Callable[[IncomingRequest], Awaitable[Optional[HttpResponse]]]

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"})


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    pattern: CompiledPattern
    handler: Handler
    middleware: Tuple[Middleware, ...] = ()

    @property
    def param_names(self) -> Tuple[str, ...]:
        return self.pattern.param_names

    def describe(self) -> dict:
        return {
            "method": self.method,
            "path": self.path or "/",
            "pattern": self.pattern.regex.pattern,
            "params": list(self.param_names),
            "middleware": [_callable_name(m) for m in self.middleware],
        }


@dataclass(frozen=True)
class MatchResult:
    route: Route
    params: dict

    @property
    def values(self) -> List[str]:
        """Parameter values in declaration order, for positional handler calls."""
        return [self.params[name] for name in self.route.param_names]


def join_paths(*parts: str) -> str:
    """
    Concatenate route path pieces.

    The result has exactly one leading `/` and no trailing `/`; the bare
    root is the empty string, matching how the compiler normalizes paths.
    """
    segments: List[str] = []
    for part in parts:
        segments.extend(split_segments(part))
    return "/" + "/".join(segments) if segments else ""


class RouteTable:
    """Ordered, append-only collection of routes."""

    def __init__(self) -> None:
        self._routes: List[Route] = []
        self._prefix = ""
        self._middleware: Tuple[Middleware, ...] = ()
        self._frozen = False

    # ── Registration ──────────────────────────────────────────────────────

    def register(
        self,
        method: str,
        template: str,
        handler: Handler,
        middleware: Sequence[Middleware] = (),
    ) -> Route:
        if self._frozen:
            raise RouteConfigurationError(
                f"Route table is frozen; cannot register {method} {template}"
            )
        verb = method.upper()
        if verb not in HTTP_METHODS:
            raise RouteConfigurationError(f"Unsupported HTTP method '{method}'")
        if not callable(handler):
            raise RouteConfigurationError(f"Handler for {verb} {template} is not callable")

        full_path = join_paths(self._prefix, template)
        route = Route(
            method=verb,
            path=full_path,
            pattern=compile_template(full_path),
            handler=handler,
            middleware=self._middleware + tuple(middleware),
        )
        self._routes.append(route)
        logger.debug("Registered route %s %s", verb, full_path or "/")
        return route

    def get(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("GET", template, handler, middleware)

    def post(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("POST", template, handler, middleware)

    def put(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("PUT", template, handler, middleware)

    def patch(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("PATCH", template, handler, middleware)

    def delete(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("DELETE", template, handler, middleware)

    def options(self, template: str, handler: Handler, middleware: Sequence[Middleware] = ()) -> Route:
        return self.register("OPTIONS", template, handler, middleware)

    def group(
        self,
        prefix: str,
        middleware: Sequence[Middleware],
        block: Callable[["RouteTable"], Any],
    ) -> None:
        """
        Run `block(self)` with `prefix` and `middleware` appended to the
        current scope; the previous scope is restored afterwards, even if the
        block raises.
        """
        saved_prefix, saved_middleware = self._prefix, self._middleware
        self._prefix = join_paths(saved_prefix, prefix)
        self._middleware = saved_middleware + tuple(middleware)
        try:
            block(self)
        finally:
            self._prefix, self._middleware = saved_prefix, saved_middleware

    def freeze(self) -> None:
        self._frozen = True
        logger.info("Route table frozen with %d routes", len(self._routes))

    # ── Lookup ────────────────────────────────────────────────────────────

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def routes(self) -> Tuple[Route, ...]:
        return tuple(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def match(self, method: str, path: str) -> Optional[MatchResult]:
        verb = method.upper()
        for route in self._routes:
            if route.method != verb:
                continue
            params = route.pattern.match(path)
            if params is not None:
                return MatchResult(route=route, params=params)
        return None


def _callable_name(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)
