"""API routes. Guards run in dependency order: delay and rate limits first, then input checks.

The speed limiter counts auth requests before the auth limiter refuses them,
so a client over the hard limit is still slowed down.
"""

from fastapi import APIRouter, Depends

from bitebox.api.v1 import admin, auth, health, users
from bitebox.api.v1.guards import (
    apply_speed_limit,
    enforce_api_rate_limit,
    enforce_auth_rate_limit,
    reject_suspicious_query,
)

router = APIRouter(dependencies=[Depends(enforce_api_rate_limit)])
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(
    auth.router,
    prefix="/auth",
    tags=["auth"],
    dependencies=[
        Depends(apply_speed_limit),
        Depends(enforce_auth_rate_limit),
        Depends(reject_suspicious_query),
    ],
)
router.include_router(
    users.router,
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(reject_suspicious_query)],
)
router.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(reject_suspicious_query)],
)
