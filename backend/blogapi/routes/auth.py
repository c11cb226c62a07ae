"""
Blog API — Authentication Routes
==================================

What:  Login, logout, token verification and refresh under /api/auth.
How:   `verify` and `refresh` sit behind `require_auth`; both re-read the
       account so deactivation takes effect immediately.

    POST /api/auth/login     {"email", "password"} → {user, token, expires_in}
    POST /api/auth/logout    stateless; the client discards its token
    GET  /api/auth/verify    [auth] → {user, token_valid: true}
    POST /api/auth/refresh   [auth] → {user, token, expires_in}
"""

import logging

from blogapi import envelope
from blogapi.config import Settings
from blogapi.routing.messages import IncomingRequest
from blogapi.routing.table import Middleware, RouteTable
from blogapi.schemas.auth import LoginInput, UserOut
from blogapi.schemas.common import parse_body
from blogapi.services.auth_service import AuthService

logger = logging.getLogger(__name__)


def register_auth_routes(table: RouteTable, accounts: AuthService, settings: Settings, auth: Middleware) -> None:
    async def login(request: IncomingRequest):
        data = parse_body(LoginInput, request.json())
        user, token = await accounts.login(data.email, data.password)
        return envelope.success(
            {
                "user": UserOut.model_validate(user),
                "token": token,
                "expires_in": settings.jwt_expiry,
            },
            "Login successful",
        )

    async def logout(request: IncomingRequest):
        # Tokens are not tracked server-side; nothing to revoke.
        return envelope.success(None, "Logout successful")

    async def verify(request: IncomingRequest):
        user = await accounts.current_user(request.auth)
        return envelope.success(
            {"user": UserOut.model_validate(user), "token_valid": True},
            "Token is valid",
        )

    async def refresh(request: IncomingRequest):
        user, token = await accounts.refresh(request.auth)
        return envelope.success(
            {
                "user": UserOut.model_validate(user),
                "token": token,
                "expires_in": settings.jwt_expiry,
            },
            "Token refreshed successfully",
        )

    def routes(t: RouteTable) -> None:
        t.post("/login", login)
        t.post("/logout", logout)
        t.get("/verify", verify, [auth])
        t.post("/refresh", refresh, [auth])

    table.group("/api/auth", [], routes)
