"""
CLI entrypoint for the token cleanup job. Run from cron, e.g.:

  python -m bitebox.retention

Or hourly: 0 * * * * cd /path/to/bitebox && .venv/bin/python -m bitebox.retention
"""

import logging
import sys

from bitebox.core.config import get_settings
from bitebox.core.database import SessionLocal
from bitebox.core.logging import configure_logging
from bitebox.services.retention import run_token_cleanup

logger = logging.getLogger(__name__)


def main() -> int:
    """Run cleanup: delete expired refresh tokens and spent reset tokens."""
    settings = get_settings()
    configure_logging(settings.DEBUG)
    db = SessionLocal()
    try:
        refresh_deleted, reset_deleted = run_token_cleanup(db, settings)
        logger.info(
            "Token cleanup completed: refresh_tokens_deleted=%s, reset_tokens_deleted=%s",
            refresh_deleted,
            reset_deleted,
        )
        return 0
    except Exception as e:
        logger.exception("Token cleanup job failed: %s", e)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
