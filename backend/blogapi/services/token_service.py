"""
Blog API — Bearer Token Service
=================================

What:  Issues and verifies the HMAC-signed JWTs that protect admin routes.
How:   PyJWT with the secret and algorithm from settings. Claims:

    user_id   numeric account id
    email     account email
    name      display name
    role      authorization role ("admin", "editor", ...)
    iat, exp  issue/expiry timestamps (exp = iat + jwt_expiry)
    iss       only when `jwt_issuer` is configured

Verification failures raise a specific `AuthenticationError` subclass so the
auth middleware can answer with the right short message:

    ExpiredSignatureError                 → TokenExpired
    bad signature / undecodable token     → SignatureInvalid
    missing exp, user_id or email         → MalformedPayload
    iss differs from configured issuer    → IssuerMismatch
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import jwt

from blogapi.config import Settings
from blogapi.exceptions import (
    IssuerMismatch,
    MalformedPayload,
    SignatureInvalid,
    TokenExpired,
)
from blogapi.routing.messages import AuthContext

logger = logging.getLogger(__name__)

_BEARER = re.compile(r"^\s*Bearer\s+(.+?)\s*$", re.IGNORECASE)

REQUIRED_CLAIMS = ("user_id", "email")


class TokenService:
    def __init__(self, settings: Settings):
        self.settings = settings

    def issue(self, user: Any) -> str:
        """Sign a token for `user` (anything with id, email, name and role)."""
        now = int(time.time())
        payload: Dict[str, Any] = {
            "iat": now,
            "exp": now + self.settings.jwt_expiry,
            "user_id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
        }
        if self.settings.jwt_issuer:
            payload["iss"] = self.settings.jwt_issuer
        return jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)

    def extract_token(self, headers: Mapping[str, str], query: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """
        Bearer token from `Authorization`, or from the `token` query parameter
        outside production. Returns None when neither carries one.
        """
        header = headers.get("authorization") or headers.get("Authorization")
        if header:
            m = _BEARER.match(header)
            if m:
                return m.group(1)

        if query is not None and not self.settings.is_production:
            token = query.get("token")
            if token:
                return token
        return None

    def validate_token(self, token: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
                options={"require": ["exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpired(reason="Token expired") from exc
        except jwt.MissingRequiredClaimError as exc:
            raise MalformedPayload(reason=f"Missing required claim: {exc.claim}") from exc
        except (jwt.InvalidSignatureError, jwt.DecodeError, jwt.ImmatureSignatureError) as exc:
            raise SignatureInvalid(reason=str(exc) or "Invalid signature") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedPayload(reason=str(exc) or "Invalid token") from exc

        missing = [claim for claim in REQUIRED_CLAIMS if payload.get(claim) in (None, "")]
        if missing:
            raise MalformedPayload(reason=f"Missing required claim: {', '.join(missing)}")

        issuer = self.settings.jwt_issuer
        if issuer and payload.get("iss") != issuer:
            raise IssuerMismatch(reason="Token issuer mismatch")

        return payload

    def authenticate(self, token: str) -> AuthContext:
        payload = self.validate_token(token)
        try:
            subject_id = int(payload["user_id"])
        except (TypeError, ValueError) as exc:
            raise MalformedPayload(reason="user_id claim is not an integer") from exc

        return AuthContext(
            subject_id=subject_id,
            email=str(payload["email"]),
            display_name=payload.get("name"),
            role=str(payload.get("role") or "admin"),
            issued_at=_timestamp(payload.get("iat")),
            expires_at=_timestamp(payload["exp"]),
        )


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError) as exc:
        raise MalformedPayload(reason="Invalid timestamp claim") from exc
