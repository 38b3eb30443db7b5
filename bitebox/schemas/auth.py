"""Request/response schemas for auth, user and admin endpoints."""

import re
from typing import Annotated, ClassVar, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from bitebox.core.security import (
    EMAIL_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
)

# Markup characters are refused outright so a valid address never needs escaping.
EMAIL_RE = re.compile(r"^[^@\s<>\"]+@[^@\s<>\"]+\.[^@\s<>\"]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
PASSWORD_SPECIALS = "@$!%*?&"

Role = Literal["customer", "admin", "driver"]


def normalize_email(value: str) -> str:
    """Trim and lower-case; raise ValueError when the address is malformed."""
    email = value.strip().lower()
    if not email or len(email) > EMAIL_MAX_LEN or not EMAIL_RE.match(email):
        raise ValueError("Please provide a valid email address")
    return email


def check_password_strength(value: str) -> str:
    if not any(c.islower() for c in value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not any(c.isupper() for c in value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not any(c.isdigit() for c in value):
        raise ValueError("Password must contain at least one number")
    if not any(c in PASSWORD_SPECIALS for c in value):
        raise ValueError(
            f"Password must contain at least one special character ({PASSWORD_SPECIALS})"
        )
    return value


NormalizedEmail = Annotated[str, Field(max_length=EMAIL_MAX_LEN), AfterValidator(normalize_email)]
StrongPassword = Annotated[
    str,
    Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN),
    AfterValidator(check_password_strength),
]


class GuardedRequest(BaseModel):
    """
    Base for request bodies passed through the input guards.

    text_fields names the free-text fields that get scrubbed and checked for
    injection patterns. Passwords and signed tokens are never listed: rewriting
    them would change what the user typed or break the signature.
    verbatim_fields are text fields whose validated format already excludes
    markup; they are cleaned and checked but not HTML-escaped.
    """

    model_config = ConfigDict(populate_by_name=True)

    text_fields: ClassVar[tuple[str, ...]] = ()
    verbatim_fields: ClassVar[tuple[str, ...]] = ("email",)


class RegisterRequest(GuardedRequest):
    """New customer account."""

    text_fields: ClassVar[tuple[str, ...]] = ("email", "username")

    email: NormalizedEmail = Field(..., description="Email address")
    password: StrongPassword = Field(..., description="Password")
    username: str = Field(
        ..., min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN, description="Display name"
    )

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not USERNAME_RE.match(v):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return v


class LoginRequest(GuardedRequest):
    """Credentials for login."""

    text_fields: ClassVar[tuple[str, ...]] = ("email",)

    email: NormalizedEmail = Field(..., description="Email address")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class RefreshTokenRequest(GuardedRequest):
    refresh_token: str = Field(..., alias="refreshToken", min_length=1, max_length=2048)


class LogoutRequest(GuardedRequest):
    refresh_token: str | None = Field(default=None, alias="refreshToken", max_length=2048)


class ForgotPasswordRequest(GuardedRequest):
    text_fields: ClassVar[tuple[str, ...]] = ("email",)

    email: NormalizedEmail


class ResetPasswordRequest(GuardedRequest):
    token: str = Field(..., min_length=1, max_length=256, description="Reset token from the email")
    new_password: StrongPassword = Field(..., alias="newPassword")


class UpdateRoleRequest(GuardedRequest):
    """Admin action: change the role of the account with this email."""

    text_fields: ClassVar[tuple[str, ...]] = ("email",)

    email: NormalizedEmail
    role: Role


class UserOut(BaseModel):
    """Public user fields (no password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    role: Role | None = None


class AuthData(BaseModel):
    """Payload of register and login: the user plus both tokens."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserOut
    token: str = Field(..., description="Access token; send as Authorization: Bearer <token>")
    refresh_token: str = Field(..., alias="refreshToken")


class TokenPairData(BaseModel):
    """Payload of refresh-token."""

    model_config = ConfigDict(populate_by_name=True)

    token: str
    refresh_token: str = Field(..., alias="refreshToken")


class UserData(BaseModel):
    user: UserOut


class UsersListData(BaseModel):
    """Response for GET /admin/users (admin only)."""

    users: list[UserOut]
