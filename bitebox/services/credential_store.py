"""Persistence of users, refresh tokens and password reset tokens.

Every query goes through the SQLAlchemy ORM or Core with bound parameters;
this is the actual protection against SQL injection. The pattern checks in
``bitebox.services.sanitize`` sit in front of it as a heuristic only.
"""

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bitebox.core.errors import EmailAlreadyExistsError, UserNotFoundError
from bitebox.models import PasswordResetToken, RefreshToken, User

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CredentialStore:
    """
    Owns User and RefreshToken rows. Each write commits its own transaction
    unless called with commit=False; the caller then ends the unit of work
    with commit() or rollback().
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    # Users

    def find_user_by_email(self, email: str) -> User | None:
        return self.session.scalars(select(User).where(User.email == email)).first()

    def find_user_by_id(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def list_users(self) -> list[User]:
        return list(self.session.scalars(select(User).order_by(User.id)))

    def create_user(
        self,
        email: str,
        password_hash: str,
        username: str,
        role: str = "customer",
        commit: bool = True,
    ) -> User:
        """Insert a user; the unique index on email decides races between two registrations."""
        user = User(email=email, password_hash=password_hash, username=username, role=role)
        self.session.add(user)
        try:
            # Flush first so the duplicate surfaces here even when the caller commits later.
            self.session.flush()
            if commit:
                self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.info("User insert hit the unique email index; treating as duplicate")
            raise EmailAlreadyExistsError() from e
        if commit:
            self.session.refresh(user)
        return user

    def update_user_role(self, email: str, role: str) -> User:
        user = self.find_user_by_email(email)
        if user is None:
            raise UserNotFoundError()
        user.role = role
        self.session.commit()
        self.session.refresh(user)
        return user

    def update_password(self, user_id: int, password_hash: str) -> None:
        self.session.execute(
            update(User).where(User.id == user_id).values(password_hash=password_hash)
        )
        self.session.commit()

    # Refresh tokens

    def upsert_refresh_token(
        self,
        user_id: int,
        token: str,
        expires_at: datetime,
        commit: bool = True,
    ) -> None:
        """
        Make ``token`` the only live refresh token of the user.

        Single INSERT .. ON CONFLICT (user_id) DO UPDATE, so a concurrent login and
        refresh for the same user end with one of the two tokens, never both or none.
        """
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Refresh token upsert not supported on dialect {dialect!r}")
        stmt = insert(RefreshToken).values(user_id=user_id, token=token, expires_at=expires_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RefreshToken.user_id],
            set_={"token": stmt.excluded.token, "expires_at": stmt.excluded.expires_at},
        )
        self.session.execute(stmt)
        if commit:
            self.session.commit()

    def find_refresh_token(self, user_id: int, token: str, now: datetime) -> bool:
        """True only when the user's stored token equals ``token`` and has not expired."""
        row = self.session.scalars(
            select(RefreshToken.id).where(
                RefreshToken.user_id == user_id,
                RefreshToken.token == token,
                RefreshToken.expires_at > now,
            )
        ).first()
        return row is not None

    def delete_refresh_token(self, token: str) -> int:
        """Delete by token value; deleting an absent token is not an error."""
        result = self.session.execute(delete(RefreshToken).where(RefreshToken.token == token))
        self.session.commit()
        return result.rowcount or 0

    def delete_user_refresh_tokens(self, user_id: int) -> int:
        result = self.session.execute(delete(RefreshToken).where(RefreshToken.user_id == user_id))
        self.session.commit()
        return result.rowcount or 0

    # Password reset tokens

    def create_reset_token(self, user_id: int, token_hash: str, expires_at: datetime, now: datetime) -> None:
        """Store a new reset token hash; earlier unused tokens of the user stop working."""
        self.session.execute(
            update(PasswordResetToken)
            .where(
                PasswordResetToken.user_id == user_id,
                PasswordResetToken.used_at.is_(None),
            )
            .values(used_at=now)
        )
        self.session.add(
            PasswordResetToken(user_id=user_id, token_hash=token_hash, expires_at=expires_at)
        )
        self.session.commit()

    def consume_reset_token(self, token_hash: str, now: datetime) -> int | None:
        """
        Mark a live, unused token as used and return its user id.

        The conditional UPDATE is the claim: of two concurrent resets with the same
        token only one sees rowcount 1.
        """
        row = self.session.execute(
            select(PasswordResetToken.id, PasswordResetToken.user_id).where(
                PasswordResetToken.token_hash == token_hash,
                PasswordResetToken.used_at.is_(None),
                PasswordResetToken.expires_at > now,
            )
        ).first()
        if row is None:
            return None
        result = self.session.execute(
            update(PasswordResetToken)
            .where(PasswordResetToken.id == row.id, PasswordResetToken.used_at.is_(None))
            .values(used_at=now)
        )
        self.session.commit()
        if not result.rowcount:
            return None
        return row.user_id
