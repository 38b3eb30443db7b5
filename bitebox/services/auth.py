"""Registration, login, refresh-token rotation, logout and password reset."""

import hashlib
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from bitebox.core.errors import (
    AuthError,
    EmailAlreadyExistsError,
    InternalError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidResetTokenError,
    UserNotFoundError,
)
from bitebox.core.security import (
    InvalidTokenError,
    hash_password,
    issue_access_token,
    issue_refresh_token,
    refresh_token_lifetime,
    verify_password,
    verify_token,
)
from bitebox.models import User
from bitebox.services.credential_store import CredentialStore
from bitebox.services.sessions import SessionContext, new_session_context

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "customer"


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    """Compared against when the email is unknown so both login failures cost one bcrypt check."""
    return hash_password(secrets.token_urlsafe(16))


@dataclass(frozen=True)
class AuthResult:
    """Outcome of register and login."""

    user: User
    access_token: str
    refresh_token: str
    session: SessionContext


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    refresh_token: str
    session: SessionContext


class ResetTokenSender(Protocol):
    def __call__(self, user: User, raw_token: str, expires_at: datetime) -> None: ...


def log_reset_token_issued(user: User, raw_token: str, expires_at: datetime) -> None:
    """Default sender: no mail transport is configured, so only record that a reset was issued."""
    logger.info(
        "Password reset token issued; email delivery is not configured",
        extra={"user_id": user.id, "expires_at": expires_at.isoformat()},
    )


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


class AuthService:
    """
    Orchestrates the Credential Store and the token issuer. Owns no state:
    sessions are returned as SessionContext values for the request layer to attach.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        session_max_age: timedelta,
        reset_token_lifetime: timedelta,
        reset_sender: ResetTokenSender = log_reset_token_issued,
        clock: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self.store = store
        self.session_max_age = session_max_age
        self.reset_token_lifetime = reset_token_lifetime
        self.reset_sender = reset_sender
        self.clock = clock

    def _issue_pair(self, user: User, commit: bool = True) -> tuple[str, str]:
        now = self.clock()
        access = issue_access_token(user.id, user.role, now=now)
        refresh = issue_refresh_token(user.id, now=now)
        self.store.upsert_refresh_token(
            user.id, refresh, now + refresh_token_lifetime(), commit=commit
        )
        return access, refresh

    def _session_for(self, user: User) -> SessionContext:
        return new_session_context(
            user_id=user.id,
            email=user.email,
            username=user.username,
            role=user.role,
            max_age=self.session_max_age,
            now=self.clock(),
        )

    def register(self, email: str, password: str, username: str) -> AuthResult:
        """
        Create a customer account and sign it in. Raises EmailAlreadyExistsError.

        The user row and its refresh token commit together; if either write
        fails neither is kept, so the email stays free for a retry.
        """
        try:
            if self.store.find_user_by_email(email) is not None:
                raise EmailAlreadyExistsError()
            user = self.store.create_user(
                email=email,
                password_hash=hash_password(password),
                username=username,
                role=DEFAULT_ROLE,
                commit=False,
            )
            access, refresh = self._issue_pair(user, commit=False)
            self.store.commit()
        except AuthError:
            self.store.rollback()
            raise
        except (SQLAlchemyError, ValueError) as e:
            self.store.rollback()
            logger.exception("Registration failed")
            raise InternalError() from e
        logger.info("User registered", extra={"user_id": user.id})
        return AuthResult(user, access, refresh, self._session_for(user))

    def login(self, email: str, password: str) -> AuthResult:
        """Verify credentials and rotate the user's refresh token. Raises InvalidCredentialsError."""
        try:
            user = self.store.find_user_by_email(email)
            if user is None:
                verify_password(password, _dummy_password_hash())
                raise InvalidCredentialsError()
            if not verify_password(password, user.password_hash):
                raise InvalidCredentialsError()
            access, refresh = self._issue_pair(user)
        except AuthError:
            raise
        except (SQLAlchemyError, ValueError) as e:
            logger.exception("Login failed")
            raise InternalError() from e
        logger.info("User logged in", extra={"user_id": user.id})
        return AuthResult(user, access, refresh, self._session_for(user))

    def refresh(self, refresh_token: str) -> RefreshResult:
        """
        Exchange a live refresh token for a new pair. The presented token must be the
        one currently stored for its user; after this call it no longer is.
        """
        try:
            payload = verify_token(refresh_token, "refresh")
        except InvalidTokenError as e:
            logger.info("Refresh rejected: %s", e)
            raise InvalidRefreshTokenError() from e
        try:
            if not self.store.find_refresh_token(payload.user_id, refresh_token, self.clock()):
                logger.info("Refresh rejected: token revoked or superseded", extra={"user_id": payload.user_id})
                raise InvalidRefreshTokenError()
            user = self.store.find_user_by_id(payload.user_id)
            if user is None:
                raise UserNotFoundError()
            access, refresh = self._issue_pair(user)
        except AuthError:
            raise
        except (SQLAlchemyError, ValueError) as e:
            logger.exception("Token refresh failed")
            raise InternalError() from e
        return RefreshResult(access, refresh, self._session_for(user))

    def logout(self, refresh_token: str | None) -> None:
        """
        Revoke the refresh token if one is given. Absent tokens are fine, and a
        storage failure is logged, not raised: logout always succeeds for the client.
        """
        if not refresh_token:
            return
        try:
            deleted = self.store.delete_refresh_token(refresh_token)
        except SQLAlchemyError:
            logger.exception("Logout failed to delete refresh token")
            return
        logger.debug("Logout", extra={"refresh_tokens_deleted": deleted})

    def forgot_password(self, email: str) -> None:
        """
        Issue a reset token when the account exists. Callers answer the same either
        way, so a failing sender is logged rather than raised.
        """
        try:
            user = self.store.find_user_by_email(email)
            if user is None:
                return
            now = self.clock()
            raw_token = secrets.token_urlsafe(32)
            expires_at = now + self.reset_token_lifetime
            self.store.create_reset_token(user.id, hash_reset_token(raw_token), expires_at, now)
        except SQLAlchemyError as e:
            logger.exception("Forgot password failed")
            raise InternalError() from e
        try:
            self.reset_sender(user, raw_token, expires_at)
        except Exception:
            logger.exception("Password reset delivery failed", extra={"user_id": user.id})

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a single-use reset token, set the new password and revoke refresh tokens."""
        try:
            user_id = self.store.consume_reset_token(hash_reset_token(token), self.clock())
            if user_id is None:
                raise InvalidResetTokenError()
            self.store.update_password(user_id, hash_password(new_password))
            self.store.delete_user_refresh_tokens(user_id)
        except AuthError:
            raise
        except (SQLAlchemyError, ValueError) as e:
            logger.exception("Password reset failed")
            raise InternalError() from e
        logger.info("Password reset", extra={"user_id": user_id})
