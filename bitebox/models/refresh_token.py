"""ORM model for the single live refresh token of each user."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from bitebox.models.base import Base


class RefreshToken(Base):
    """
    Persisted refresh credential. One row per user (user_id is unique):
    login, registration and refresh overwrite it, logout deletes it.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    token = Column(String(512), nullable=False, unique=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
