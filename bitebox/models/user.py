"""ORM model for application users (auth and RBAC)."""

from sqlalchemy import Column, DateTime, Integer, String, func

from bitebox.models.base import Base

USER_ROLES = ("customer", "admin", "driver")


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    email is stored lower-cased; role: 'customer', 'admin' or 'driver'
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    username = Column(String(50), nullable=False)
    role = Column(String(32), nullable=False, default="customer")
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
