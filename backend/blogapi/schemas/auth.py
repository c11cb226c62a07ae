"""Login payload and the public view of a user account."""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Deliberately loose: one @, no spaces, a dot in the domain.
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LoginInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = Field(default=None, validate_default=True)
    password: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("email", mode="before")
    @classmethod
    def check_email(cls, v: Any) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("Email is required")
        if not isinstance(v, str) or not _EMAIL.match(v.strip()):
            raise ValueError("Invalid email format")
        return v.strip().lower()

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, v: Any) -> str:
        if v is None or v == "":
            raise ValueError("Password is required")
        if not isinstance(v, str):
            raise ValueError("Password must be a string")
        return v


class UserOut(BaseModel):
    """Account fields safe to return; never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
