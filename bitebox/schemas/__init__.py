"""Pydantic request/response schemas."""

from bitebox.schemas.auth import (
    AuthData,
    ForgotPasswordRequest,
    GuardedRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairData,
    UpdateRoleRequest,
    UserData,
    UserOut,
    UsersListData,
)
from bitebox.schemas.common import Envelope, ErrorEnvelope
from bitebox.schemas.health import HealthData

__all__ = [
    "AuthData",
    "Envelope",
    "ErrorEnvelope",
    "ForgotPasswordRequest",
    "GuardedRequest",
    "HealthData",
    "LoginRequest",
    "LogoutRequest",
    "RefreshTokenRequest",
    "RegisterRequest",
    "ResetPasswordRequest",
    "TokenPairData",
    "UpdateRoleRequest",
    "UserData",
    "UserOut",
    "UsersListData",
]
