"""
Blog API — Account Service
============================

What:  Password login, token refresh, and account lookup for admin users.
How:   bcrypt for password hashes, `TokenService` for bearer tokens. Token
       claims are only a starting point: verify/refresh always re-read the
       account so a deactivated user loses access on the next call.
"""

import logging
from typing import Optional, Tuple

import bcrypt
from sqlalchemy import select

from blogapi.database import SessionFactory, session_scope
from blogapi.exceptions import UnauthorizedError, ValidationError
from blogapi.models.user import User
from blogapi.routing.messages import AuthContext
from blogapi.services.token_service import TokenService

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    raw = password.encode("utf-8")
    if len(raw) > MAX_PASSWORD_BYTES:
        raise ValidationError.single("password", "Password must be at most 72 bytes")
    return bcrypt.hashpw(raw, bcrypt.gensalt()).decode("ascii")


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("ascii"))
    except ValueError:
        # Over-long password or a hash bcrypt cannot parse.
        return False


class AuthService:
    def __init__(self, sessions: SessionFactory, tokens: TokenService):
        self.sessions = sessions
        self.tokens = tokens

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        user = await self._by_email(email)
        if user is None or not user.is_active or not check_password(password, user.password_hash):
            logger.info("Failed login for %s", email)
            raise UnauthorizedError("Invalid email or password")
        logger.info("User %d logged in", user.id)
        return user, self.tokens.issue(user)

    async def current_user(self, auth: Optional[AuthContext]) -> User:
        if auth is None:
            raise UnauthorizedError("No authenticated user")
        async with session_scope(self.sessions, "get user") as session:
            user = await session.get(User, auth.subject_id)
        if user is None or not user.is_active:
            raise UnauthorizedError("User account is inactive")
        return user

    async def refresh(self, auth: Optional[AuthContext]) -> Tuple[User, str]:
        user = await self.current_user(auth)
        return user, self.tokens.issue(user)

    async def create_user(self, email: str, password: str, name: str, role: str = "admin") -> User:
        email = email.strip().lower()
        async with session_scope(self.sessions, "create user") as session:
            existing = await session.execute(select(User.id).where(User.email == email))
            if existing.first() is not None:
                raise ValidationError.single("email", "Email already registered")
            user = User(email=email, password_hash=hash_password(password), name=name, role=role)
            session.add(user)
            await session.flush()
            await session.refresh(user)
        logger.info("Created user %d (%s, role=%s)", user.id, email, role)
        return user

    async def _by_email(self, email: str) -> Optional[User]:
        async with session_scope(self.sessions, "find user") as session:
            result = await session.execute(select(User).where(User.email == email.strip().lower()))
            return result.scalar_one_or_none()
