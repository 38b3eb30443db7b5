"""FastAPI application entrypoint. No business logic; only wiring and middleware."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from bitebox.api.errors import error_response, register_exception_handlers
from bitebox.api.v1 import router as v1_router
from bitebox.core.config import Settings, get_settings
from bitebox.core.errors import RequestTimeoutError
from bitebox.core.logging import configure_logging
from bitebox.services.auth import ResetTokenSender, log_reset_token_issued
from bitebox.services.rate_limit import RateLimiter, SpeedLimiter
from bitebox.services.sessions import SessionStore

logger = logging.getLogger(__name__)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """Fail requests that run longer than ``timeout`` seconds with a transient error."""

    def __init__(self, app, timeout: float) -> None:
        super().__init__(app)
        self.timeout = timeout

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(
                "Request timed out",
                extra={"path": request.url.path, "timeout_sec": self.timeout},
            )
            return error_response(
                RequestTimeoutError.status_code,
                RequestTimeoutError.default_message,
                RequestTimeoutError.code,
            )


def create_app(
    settings: Settings | None = None,
    reset_sender: ResetTokenSender = log_reset_token_issued,
) -> FastAPI:
    """Build the app with fresh limiter counters and session store."""
    settings = settings or get_settings()
    configure_logging(settings.DEBUG)

    app = FastAPI(
        title="BiteBox API",
        version="0.1.0",
        docs_url="/docs" if settings.APP_ENV == "dev" else None,
        redoc_url="/redoc" if settings.APP_ENV == "dev" else None,
    )

    window = settings.RATE_LIMIT_WINDOW_SECONDS
    app.state.api_limiter = RateLimiter(
        settings.RATE_LIMIT_MAX,
        window,
        "Too many requests from this IP, please try again later.",
    )
    app.state.auth_limiter = RateLimiter(
        settings.AUTH_RATE_LIMIT_MAX,
        window,
        "Too many authentication attempts, please try again later.",
    )
    app.state.speed_limiter = SpeedLimiter(
        delay_after=settings.SPEED_LIMIT_DELAY_AFTER,
        delay_ms=settings.SPEED_LIMIT_DELAY_MS,
        max_delay_ms=settings.SPEED_LIMIT_MAX_DELAY_MS,
        window_seconds=window,
    )
    app.state.settings = settings
    app.state.session_store = SessionStore()
    app.state.reset_sender = reset_sender

    app.add_middleware(RequestTimeoutMiddleware, timeout=settings.REQUEST_TIMEOUT_SEC)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_URL],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    )

    register_exception_handlers(app)
    app.include_router(v1_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"message": "BiteBox API"}

    return app


app = create_app()
