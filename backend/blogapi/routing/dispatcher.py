"""
Blog API — Request Dispatcher
===============================

What:  Turns one `IncomingRequest` into exactly one `HttpResponse`.
How:   A fixed sequence per request:

    OPTIONS ───────────────────────────────► CORS preflight (200, empty)
    no route for method + path ────────────► 404 "Route not found"
    route middleware, in declared order ───► first non-None response wins
    handler(request, *params) ─────────────► its response
    BlogAPIError raised anywhere above ────► envelope with the error's status/code
    any other exception ───────────────────► 500 (message only in debug mode)

Every non-preflight response then receives the CORS headers.

Who:   Called by `routing/asgi.py` for each request Starlette routes to it,
       and directly by tests.

The dispatcher is the single place where exceptions become error envelopes;
nothing raised by a handler or middleware escapes `dispatch()`.
"""

import logging

from blogapi import envelope
from blogapi.config import Settings
from blogapi.exceptions import AuthenticationError, BlogAPIError, DatabaseError, ValidationError
from blogapi.middleware.request_id import request_id_var
from blogapi.routing.messages import HttpResponse, IncomingRequest
from blogapi.routing.table import RouteTable

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(self, table: RouteTable, settings: Settings):
        self.table = table
        self.settings = settings

    async def dispatch(self, request: IncomingRequest) -> HttpResponse:
        if request.method == "OPTIONS":
            return envelope.cors_preflight()

        response = await self._route(request)
        response.headers.update(
            envelope.cors_headers(request.headers.get("origin"), self.settings.cors_origins_list)
        )
        return response

    async def _route(self, request: IncomingRequest) -> HttpResponse:
        matched = self.table.match(request.method, request.path)
        if matched is None:
            logger.debug("No route for %s %s", request.method, request.path)
            return envelope.not_found("Route not found")

        request.state["route"] = matched.route
        request.state["params"] = matched.params

        try:
            for middleware in matched.route.middleware:
                early = await middleware(request)
                if early is not None:
                    return early
            return await matched.route.handler(request, *matched.values)
        except BlogAPIError as exc:
            return self._error_response(request, exc)
        except Exception as exc:
            logger.error(
                "[%s] Unhandled error in %s %s: %s",
                request_id_var.get(""),
                request.method,
                request.path,
                exc,
                exc_info=True,
            )
            message = str(exc) if self.settings.app_debug else "Internal server error"
            return envelope.server_error(message)

    def _error_response(self, request: IncomingRequest, exc: BlogAPIError) -> HttpResponse:
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            # Client sees the public message; the context stays in the log.
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s %s → %d %s", rid, request.method, request.path, exc.status_code, exc.code)

        if isinstance(exc, ValidationError):
            return envelope.validation_error(exc.errors, exc.message)

        details = exc.details
        if isinstance(exc, AuthenticationError) and self.settings.is_development:
            details = {"reason": exc.reason}
        if isinstance(exc, DatabaseError) and self.settings.app_debug and exc.context.get("error"):
            details = {"error": exc.context["error"]}

        return envelope.error(exc.message, details, exc.status_code, exc.code)
