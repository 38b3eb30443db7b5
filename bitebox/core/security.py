"""Password hashing and JWT issuing/verification for access and refresh tokens."""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import bcrypt
import jwt

from bitebox.core.config import settings

TokenKind = Literal["access", "refresh"]

# Min/max lengths for input validation.
USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
EMAIL_MAX_LEN = 255

# bcrypt only looks at the first 72 bytes of the password.
_BCRYPT_MAX_BYTES = 72


class InvalidTokenError(Exception):
    """Token signature, expiry, or claims are not valid."""


@dataclass(frozen=True)
class TokenPayload:
    """Verified claims of an access or refresh token."""

    user_id: int
    kind: TokenKind
    jti: str
    expires_at: datetime
    role: str | None = None


def hash_password(plain_password: str, rounds: int | None = None) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (constant-time compare)."""
    pw_bytes = plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def _secret_for(kind: TokenKind) -> str:
    if kind == "access":
        return settings.JWT_ACCESS_SECRET.get_secret_value()
    return settings.JWT_REFRESH_SECRET.get_secret_value()


def _encode(claims: dict[str, Any], kind: TokenKind, lifetime: timedelta, now: datetime | None) -> str:
    issued = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        **claims,
        "type": kind,
        # Random id: two tokens minted in the same second must still differ.
        "jti": uuid.uuid4().hex,
        "iat": issued,
        "exp": issued + lifetime,
    }
    return jwt.encode(payload, _secret_for(kind), algorithm=settings.JWT_ALGORITHM)


def access_token_lifetime() -> timedelta:
    return timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def refresh_token_lifetime() -> timedelta:
    return timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)


def issue_access_token(user_id: int, role: str, now: datetime | None = None) -> str:
    """Create a short-lived access token carrying user id and role."""
    return _encode(
        {"sub": str(user_id), "role": role},
        "access",
        access_token_lifetime(),
        now,
    )


def issue_refresh_token(user_id: int, now: datetime | None = None) -> str:
    """Create a refresh token carrying only the user id, signed with the refresh secret."""
    return _encode({"sub": str(user_id)}, "refresh", refresh_token_lifetime(), now)


def verify_token(token: str, kind: TokenKind) -> TokenPayload:
    """
    Decode and validate a token against the secret for ``kind``.
    Raises InvalidTokenError on bad signature, expiry, wrong type, or malformed claims.
    """
    try:
        payload = jwt.decode(
            token,
            _secret_for(kind),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat", "jti"]},
        )
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e)) from e

    if payload.get("type") != kind:
        raise InvalidTokenError(f"expected a {kind} token")
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as e:
        raise InvalidTokenError("invalid subject") from e
    role = payload.get("role")
    if kind == "access" and not role:
        raise InvalidTokenError("access token without role")
    return TokenPayload(
        user_id=user_id,
        kind=kind,
        jti=str(payload["jti"]),
        expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        role=role,
    )
