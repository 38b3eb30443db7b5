"""Token retention: delete expired refresh tokens and spent password reset tokens."""

import logging
from datetime import datetime, timezone, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, or_
from sqlalchemy.orm import Session

from bitebox.models import PasswordResetToken, RefreshToken

if TYPE_CHECKING:
    from bitebox.core.config import Settings

logger = logging.getLogger(__name__)


def run_token_cleanup(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> tuple[int, int]:
    """
    Delete refresh tokens past expires_at, and reset tokens that are expired or
    were used more than TOKEN_RETENTION_HOURS ago.

    Returns (refresh_tokens_deleted, reset_tokens_deleted). Idempotent: safe to run repeatedly.
    """
    if not settings.TOKEN_CLEANUP_ENABLED:
        logger.info("Token cleanup is disabled (TOKEN_CLEANUP_ENABLED=false); skipping.")
        return (0, 0)

    current = now or datetime.now(timezone.utc)
    used_cutoff = current - timedelta(hours=settings.TOKEN_RETENTION_HOURS)
    refresh_deleted = session.execute(
        delete(RefreshToken).where(RefreshToken.expires_at <= current)
    ).rowcount or 0
    reset_deleted = session.execute(
        delete(PasswordResetToken).where(
            or_(
                PasswordResetToken.expires_at <= current,
                PasswordResetToken.used_at <= used_cutoff,
            )
        )
    ).rowcount or 0
    session.commit()

    if refresh_deleted or reset_deleted:
        logger.info(
            "Token cleanup run: refresh_tokens_deleted=%s, reset_tokens_deleted=%s",
            refresh_deleted,
            reset_deleted,
        )
    return (refresh_deleted, reset_deleted)
