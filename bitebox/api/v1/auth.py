"""Auth routes (register, login, refresh, logout, password reset) and auth dependencies."""

import logging
from collections.abc import Callable
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bitebox.api.v1.guards import guarded_body
from bitebox.core.config import get_settings
from bitebox.core.database import get_db
from bitebox.core.errors import ForbiddenError, NotAuthenticatedError
from bitebox.core.security import InvalidTokenError, verify_token
from bitebox.schemas.auth import (
    AuthData,
    ForgotPasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenPairData,
    UserOut,
)
from bitebox.schemas.common import Envelope
from bitebox.services.auth import AuthService
from bitebox.services.credential_store import CredentialStore
from bitebox.services.sessions import SessionContext, SessionStore

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent"


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_auth_service(
    request: Request,
    db: Annotated[Session, Depends(get_db)],
) -> AuthService:
    settings = get_settings()
    return AuthService(
        CredentialStore(db),
        session_max_age=timedelta(hours=settings.SESSION_MAX_AGE_HOURS),
        reset_token_lifetime=timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        reset_sender=request.app.state.reset_sender,
    )


def _session_id(request: Request) -> str | None:
    return request.cookies.get(get_settings().SESSION_COOKIE_NAME)


def _attach_session(
    request: Request,
    response: Response,
    sessions: SessionStore,
    context: SessionContext,
) -> None:
    """Store a fresh session and point the cookie at it; any previous session id is dropped."""
    settings = get_settings()
    sessions.destroy(_session_id(request))
    sessions.save(context)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=context.session_id,
        max_age=settings.SESSION_MAX_AGE_HOURS * 3600,
        httponly=True,
        secure=settings.APP_ENV == "prod",
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=Envelope[AuthData],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def register(
    request: Request,
    response: Response,
    body: Annotated[RegisterRequest, Depends(guarded_body(RegisterRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> Envelope[AuthData]:
    """Create a customer account; returns the user plus access and refresh tokens."""
    result = auth.register(body.email, body.password, body.username)
    _attach_session(request, response, sessions, result.session)
    user = result.user
    return Envelope[AuthData](
        message="User registered successfully",
        data=AuthData(
            user=UserOut(id=user.id, email=user.email, username=user.username),
            token=result.access_token,
            refresh_token=result.refresh_token,
        ),
    )


@router.post("/login", response_model=Envelope[AuthData])
def login(
    request: Request,
    response: Response,
    body: Annotated[LoginRequest, Depends(guarded_body(LoginRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> Envelope[AuthData]:
    """
    Authenticate with email and password; returns tokens and the user's role.
    Include the token in the Authorization header as: Bearer <token>
    """
    result = auth.login(body.email, body.password)
    _attach_session(request, response, sessions, result.session)
    return Envelope[AuthData](
        message="Login successful",
        data=AuthData(
            user=UserOut.model_validate(result.user),
            token=result.access_token,
            refresh_token=result.refresh_token,
        ),
    )


@router.post("/refresh-token", response_model=Envelope[TokenPairData])
def refresh_token(
    request: Request,
    body: Annotated[RefreshTokenRequest, Depends(guarded_body(RefreshTokenRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> Envelope[TokenPairData]:
    """Rotate the refresh token. The presented token stops working once this returns."""
    result = auth.refresh(body.refresh_token)
    sessions.replace_for_user(_session_id(request), result.session)
    return Envelope[TokenPairData](
        message="Token refreshed successfully",
        data=TokenPairData(token=result.access_token, refresh_token=result.refresh_token),
    )


@router.post("/logout", response_model=Envelope[None])
def logout(
    request: Request,
    response: Response,
    body: Annotated[LogoutRequest, Depends(guarded_body(LogoutRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> Envelope[None]:
    """Revoke the refresh token and drop the session. Always succeeds."""
    auth.logout(body.refresh_token)
    try:
        sessions.destroy(_session_id(request))
    except Exception:
        logger.exception("Session destruction error")
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return Envelope[None](message="Logged out successfully")


@router.post("/forgot-password", response_model=Envelope[None])
def forgot_password(
    body: Annotated[ForgotPasswordRequest, Depends(guarded_body(ForgotPasswordRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> Envelope[None]:
    """Same answer whether or not the account exists."""
    auth.forgot_password(body.email)
    return Envelope[None](message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=Envelope[None])
def reset_password(
    body: Annotated[ResetPasswordRequest, Depends(guarded_body(ResetPasswordRequest))],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> Envelope[None]:
    """Set a new password with a single-use reset token; signs the user out everywhere."""
    auth.reset_password(body.token, body.new_password)
    return Envelope[None](message="Password reset successfully")


def get_current_user(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> UserOut:
    """
    Dependency: require a valid Bearer access token or a live session cookie.
    Raises 401 if neither identifies an existing user.
    """
    store = CredentialStore(db)
    if credentials is not None:
        try:
            payload = verify_token(credentials.credentials, "access")
        except InvalidTokenError:
            raise NotAuthenticatedError(headers={"WWW-Authenticate": "Bearer"})
        user_id = payload.user_id
    else:
        context = sessions.get(_session_id(request))
        if context is None or not context.is_authenticated:
            raise NotAuthenticatedError(headers={"WWW-Authenticate": "Bearer"})
        user_id = context.user_id
    user = store.find_user_by_id(user_id)
    if user is None:
        raise NotAuthenticatedError(
            "The user belonging to this token no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserOut.model_validate(user)


def require_role(*roles: str) -> Callable[..., UserOut]:
    """Dependency factory: require an authenticated user whose role is one of ``roles``."""

    def dependency(current_user: Annotated[UserOut, Depends(get_current_user)]) -> UserOut:
        if current_user.role not in roles:
            raise ForbiddenError()
        return current_user

    return dependency


require_admin = require_role("admin")
