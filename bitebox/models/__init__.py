"""SQLAlchemy ORM models."""

from bitebox.models.base import Base
from bitebox.models.password_reset_token import PasswordResetToken
from bitebox.models.refresh_token import RefreshToken
from bitebox.models.user import USER_ROLES, User

__all__ = ["Base", "PasswordResetToken", "RefreshToken", "USER_ROLES", "User"]
