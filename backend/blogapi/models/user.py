"""
Blog API — User Model
=======================

Dashboard accounts. `role` is one of ROLES; viewers may sign in and verify
their token but only STAFF_ROLES reach the admin endpoints. Passwords are
stored as bcrypt hashes only; `password_hash` is never serialized (see
`schemas/auth.py`).
"""

from sqlalchemy import Boolean, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from blogapi.database import Base
from blogapi.models.mixins import TimestampMixin

ROLES = ("admin", "editor", "viewer")
# Roles allowed on the /api/admin endpoints.
STAFF_ROLES = ("admin", "editor")


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="admin", server_default=text("'admin'")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
