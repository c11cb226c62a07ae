"""
Blog API — Authentication Unit Tests
======================================

What:  Token issue/verification, the route auth middleware, and password login.
How:   PyJWT tokens signed with the test secret; accounts in a temp SQLite DB.

Test Strategy:
    ✅ Issued tokens round-trip into an AuthContext
    ✅ Each verification failure maps to its own error type
    ✅ Header parsing is scheme-case-insensitive; query tokens only outside production
    ✅ Middleware sets request.auth or answers 401 with the right message
    ✅ Role middleware answers 403
    ✅ Wrong password and inactive accounts cannot log in
"""

import time
from types import SimpleNamespace

import jwt
import pytest
from starlette.datastructures import Headers

from blogapi.exceptions import (
    IssuerMismatch,
    MalformedPayload,
    SignatureInvalid,
    TokenExpired,
    UnauthorizedError,
    ValidationError,
)
from blogapi.middleware.auth import require_auth, require_role
from blogapi.models.user import User
from blogapi.routing.messages import AuthContext, IncomingRequest
from blogapi.services.auth_service import AuthService, check_password, hash_password
from blogapi.services.token_service import TokenService

USER = SimpleNamespace(id=7, email="editor@blog.test", name="Ed Itor", role="editor")


def sign(settings, **claims):
    now = int(time.time())
    payload = {"iat": now, "exp": now + 60, "user_id": 7, "email": "editor@blog.test"}
    payload.update(claims)
    payload = {k: v for k, v in payload.items() if v is not None}
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


class TestTokenService:
    def test_issue_and_authenticate(self, settings):
        tokens = TokenService(settings)
        context = tokens.authenticate(tokens.issue(USER))

        assert isinstance(context, AuthContext)
        assert context.subject_id == 7
        assert context.email == "editor@blog.test"
        assert context.display_name == "Ed Itor"
        assert context.role == "editor"
        assert (context.expires_at - context.issued_at).total_seconds() == settings.jwt_expiry

    def test_expired_token(self, settings):
        token = sign(settings, iat=int(time.time()) - 120, exp=int(time.time()) - 60)
        with pytest.raises(TokenExpired) as exc_info:
            TokenService(settings).validate_token(token)
        assert exc_info.value.message == "Token has expired"

    def test_wrong_signature(self, settings):
        token = jwt.encode(
            {"user_id": 7, "email": "x@y.z", "exp": int(time.time()) + 60},
            "another-secret-that-is-long-enough-0123",
            algorithm="HS256",
        )
        with pytest.raises(SignatureInvalid):
            TokenService(settings).validate_token(token)

    def test_garbage_token(self, settings):
        with pytest.raises(SignatureInvalid):
            TokenService(settings).validate_token("not.a.token")

    def test_missing_exp(self, settings):
        with pytest.raises(MalformedPayload, match="Invalid or expired token"):
            TokenService(settings).validate_token(sign(settings, exp=None))

    def test_missing_user_id(self, settings):
        with pytest.raises(MalformedPayload) as exc_info:
            TokenService(settings).validate_token(sign(settings, user_id=None))
        assert "user_id" in exc_info.value.reason

    def test_issuer_mismatch(self, make_settings):
        settings = make_settings(jwt_issuer="https://blog.example")
        with pytest.raises(IssuerMismatch):
            TokenService(settings).validate_token(sign(settings, iss="https://elsewhere.example"))

    def test_matching_issuer(self, make_settings):
        settings = make_settings(jwt_issuer="https://blog.example")
        tokens = TokenService(settings)
        assert tokens.validate_token(tokens.issue(USER))["iss"] == "https://blog.example"

    @pytest.mark.parametrize(
        "header, expected",
        [
            ("Bearer abc.def.ghi", "abc.def.ghi"),
            ("bearer abc.def.ghi", "abc.def.ghi"),
            ("  BEARER   abc.def.ghi  ", "abc.def.ghi"),
            ("Basic dXNlcjpwYXNz", None),
            ("Bearer", None),
        ],
    )
    def test_extract_from_header(self, settings, header, expected):
        assert TokenService(settings).extract_token(Headers({"Authorization": header})) == expected

    def test_query_token_only_outside_production(self, make_settings):
        query = {"token": "abc"}
        assert TokenService(make_settings(app_env="development")).extract_token(Headers(), query) == "abc"
        assert TokenService(make_settings(app_env="production")).extract_token(Headers(), query) is None


class TestAuthMiddleware:
    @pytest.mark.asyncio
    async def test_valid_token_sets_context(self, settings):
        tokens = TokenService(settings)
        guard = require_auth(tokens, settings)
        request = IncomingRequest(
            "GET", "/api/admin/posts", headers=Headers({"Authorization": f"Bearer {tokens.issue(USER)}"})
        )

        assert await guard(request) is None
        assert request.auth.subject_id == 7

    @pytest.mark.asyncio
    async def test_missing_token(self, settings):
        guard = require_auth(TokenService(settings), settings)
        response = await guard(IncomingRequest("GET", "/api/admin/posts"))

        assert response.status_code == 401
        assert response.json()["error"] == {
            "message": "Authentication token required",
            "code": "UNAUTHORIZED",
        }

    @pytest.mark.asyncio
    async def test_expired_token_reason_in_development(self, make_settings):
        settings = make_settings(app_env="development")
        guard = require_auth(TokenService(settings), settings)
        token = sign(settings, exp=int(time.time()) - 10)

        response = await guard(IncomingRequest("GET", "/x", headers=Headers({"Authorization": f"Bearer {token}"})))

        assert response.status_code == 401
        error = response.json()["error"]
        assert error["message"] == "Token has expired"
        assert error["details"] == {"reason": "Token expired"}

    @pytest.mark.asyncio
    async def test_role_check(self, settings):
        tokens = TokenService(settings)
        request = IncomingRequest("GET", "/x")
        request.auth = tokens.authenticate(tokens.issue(USER))

        assert await require_role("editor", "admin")(request) is None
        response = await require_role("admin")(request)
        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Insufficient permissions"

    @pytest.mark.asyncio
    async def test_role_check_without_auth(self):
        response = await require_role("admin")(IncomingRequest("GET", "/x"))
        assert response.status_code == 401


class TestPasswords:
    def test_hash_and_check(self):
        hashed = hash_password("s3cret-password")
        assert hashed != "s3cret-password"
        assert check_password("s3cret-password", hashed)
        assert not check_password("wrong", hashed)

    def test_overlong_password_rejected(self):
        with pytest.raises(ValidationError):
            hash_password("x" * 73)

    def test_unparseable_hash_is_a_mismatch(self):
        assert not check_password("anything", "not-a-bcrypt-hash")


class TestAuthService:
    @pytest.mark.asyncio
    async def test_login_success(self, settings, sessions):
        accounts = AuthService(sessions, TokenService(settings))
        await accounts.create_user("Admin@Blog.Test", "hunter2-hunter2", "Admin")

        user, token = await accounts.login("admin@blog.test", "hunter2-hunter2")

        assert user.email == "admin@blog.test"
        assert TokenService(settings).authenticate(token).subject_id == user.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, settings, sessions):
        accounts = AuthService(sessions, TokenService(settings))
        await accounts.create_user("admin@blog.test", "hunter2-hunter2", "Admin")

        with pytest.raises(UnauthorizedError, match="Invalid email or password"):
            await accounts.login("admin@blog.test", "nope")

    @pytest.mark.asyncio
    async def test_login_unknown_user(self, settings, sessions):
        accounts = AuthService(sessions, TokenService(settings))
        with pytest.raises(UnauthorizedError, match="Invalid email or password"):
            await accounts.login("ghost@blog.test", "whatever")

    @pytest.mark.asyncio
    async def test_inactive_user_rejected(self, settings, sessions):
        tokens = TokenService(settings)
        accounts = AuthService(sessions, tokens)
        user = await accounts.create_user("admin@blog.test", "hunter2-hunter2", "Admin")
        context = tokens.authenticate(tokens.issue(user))

        async with sessions() as session:
            row = await session.get(User, user.id)
            row.is_active = False
            await session.commit()

        with pytest.raises(UnauthorizedError, match="Invalid email or password"):
            await accounts.login("admin@blog.test", "hunter2-hunter2")
        with pytest.raises(UnauthorizedError, match="User account is inactive"):
            await accounts.current_user(context)

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, settings, sessions):
        accounts = AuthService(sessions, TokenService(settings))
        await accounts.create_user("admin@blog.test", "hunter2-hunter2", "Admin")

        with pytest.raises(ValidationError) as exc_info:
            await accounts.create_user("ADMIN@blog.test", "another-pass", "Again")
        assert exc_info.value.errors == {"email": ["Email already registered"]}
