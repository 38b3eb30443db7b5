"""Request guards run as dependencies before any handler: rate limits, delay, input scrubbing."""

import logging
from collections.abc import Callable
from typing import TypeVar

from fastapi import Request, Response

from bitebox.core.errors import RateLimitedError
from bitebox.schemas.auth import GuardedRequest
from bitebox.services.rate_limit import RateLimiter
from bitebox.services.sanitize import scrub_query, scrub_request

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=GuardedRequest)


def client_key(request: Request) -> str:
    """Client identity for rate limiting: the source address."""
    return request.client.host if request.client else "unknown"


def _enforce(limiter: RateLimiter, request: Request, response: Response) -> None:
    if not request.app.state.settings.RATE_LIMIT_ENABLED:
        return
    key = client_key(request)
    info = limiter.hit(key)
    if not info.allowed:
        logger.warning(
            "Rate limit exceeded",
            extra={"client": key, "path": request.url.path, "limit": info.limit},
        )
        raise RateLimitedError(
            limiter.message,
            headers={**info.headers(), "Retry-After": str(info.reset_seconds)},
        )
    response.headers.update(info.headers())


def enforce_api_rate_limit(request: Request, response: Response) -> None:
    """General limit shared by every API route."""
    _enforce(request.app.state.api_limiter, request, response)


def enforce_auth_rate_limit(request: Request, response: Response) -> None:
    """Stricter limit for /auth routes, the brute-force target."""
    _enforce(request.app.state.auth_limiter, request, response)


def apply_speed_limit(request: Request) -> None:
    """Slow repeated auth requests down instead of refusing them."""
    if not request.app.state.settings.RATE_LIMIT_ENABLED:
        return
    delay = request.app.state.speed_limiter.throttle(client_key(request))
    if delay:
        logger.info("Delaying request", extra={"client": client_key(request), "delay_sec": delay})


def reject_suspicious_query(request: Request) -> None:
    """Clean and check every query-string value; cleaned values land on request.state.query."""
    request.state.query = scrub_query(request.query_params)


def guarded_body(model: type[RequestT]) -> Callable[..., RequestT]:
    """
    Dependency factory: FastAPI validates the body against ``model`` first, then
    its text fields are scrubbed and checked for injection patterns.
    """

    def dependency(body: model) -> RequestT:  # type: ignore[valid-type]
        return scrub_request(body)  # type: ignore[return-value]

    dependency.__name__ = f"guarded_{model.__name__}"
    return dependency
