"""Domain errors for auth and request guards, each with a stable client-visible message."""


class AuthError(Exception):
    """Base class for errors mapped to an error envelope.

    status_code and code are class-level defaults; message is what the client sees.
    Internal detail never goes into message.
    """

    status_code: int = 400
    code: str = "bad_request"
    default_message: str = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        *,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)


class ValidationError(AuthError):
    status_code = 400
    code = "validation_error"
    default_message = "Validation failed"


class EmailAlreadyExistsError(AuthError):
    status_code = 400
    code = "duplicate_email"
    default_message = "User with this email already exists"


class InvalidCredentialsError(AuthError):
    """Unknown email and wrong password share this error so accounts cannot be enumerated."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid credentials"


class InvalidRefreshTokenError(AuthError):
    status_code = 401
    code = "invalid_refresh_token"
    default_message = "Invalid refresh token"


class InvalidResetTokenError(AuthError):
    status_code = 400
    code = "invalid_reset_token"
    default_message = "Invalid or expired reset token"


class UserNotFoundError(AuthError):
    status_code = 401
    code = "user_not_found"
    default_message = "User not found"


class NotAuthenticatedError(AuthError):
    status_code = 401
    code = "not_authenticated"
    default_message = "Not authorized to access this route"


class ForbiddenError(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action"


class RateLimitedError(AuthError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests from this IP, please try again later."


class SuspiciousInputError(AuthError):
    status_code = 400
    code = "suspicious_input"
    default_message = "Invalid input detected."


class InternalError(AuthError):
    """Storage or signing failure; the cause is logged, never returned."""

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"


class RequestTimeoutError(InternalError):
    status_code = 503
    code = "request_timeout"
    default_message = "Request timed out, please try again."


__all__ = [
    "AuthError",
    "EmailAlreadyExistsError",
    "ForbiddenError",
    "InternalError",
    "InvalidCredentialsError",
    "InvalidRefreshTokenError",
    "InvalidResetTokenError",
    "NotAuthenticatedError",
    "RateLimitedError",
    "RequestTimeoutError",
    "SuspiciousInputError",
    "UserNotFoundError",
    "ValidationError",
]
