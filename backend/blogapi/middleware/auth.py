"""
Blog API — Route Authentication Middleware
============================================

What:  Route-level middleware (dispatcher style, not Starlette) that guards
       admin endpoints.
How:   `require_auth` extracts and verifies the bearer token and stores the
       resulting `AuthContext` on `request.auth`; `require_role` checks that
       context against an allow-list. Both return a response to stop the
       chain, or None to let the request continue.

    table.group("/api/admin", [require_auth(tokens, settings)], register_admin)
"""

import logging

from blogapi import envelope
from blogapi.config import Settings
from blogapi.exceptions import AuthenticationError, TokenMissing
from blogapi.middleware.request_id import request_id_var
from blogapi.routing.messages import IncomingRequest
from blogapi.routing.table import Middleware
from blogapi.services.token_service import TokenService

logger = logging.getLogger(__name__)


def require_auth(tokens: TokenService, settings: Settings) -> Middleware:
    async def authenticate(request: IncomingRequest):
        try:
            token = tokens.extract_token(request.headers, request.query)
            if token is None:
                raise TokenMissing(reason="No bearer token in Authorization header")
            request.auth = tokens.authenticate(token)
        except AuthenticationError as exc:
            logger.info(
                "[%s] Rejected token on %s %s: %s",
                request_id_var.get(""),
                request.method,
                request.path,
                exc.reason,
            )
            details = {"reason": exc.reason} if settings.is_development else None
            return envelope.unauthorized(exc.message, details)
        return None

    return authenticate


def require_role(*roles: str) -> Middleware:
    allowed = frozenset(roles)

    async def check_role(request: IncomingRequest):
        if request.auth is None:
            return envelope.unauthorized("Authentication token required")
        if request.auth.role not in allowed:
            return envelope.forbidden("Insufficient permissions")
        return None

    return check_role
