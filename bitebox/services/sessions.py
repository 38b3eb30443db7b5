"""Server-side session mirror: an immutable SessionContext per session cookie."""

import logging
import secrets
import threading
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class SessionContext(BaseModel):
    """Authenticated identity held server-side for the lifetime of the session cookie."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    user_id: int
    email: str
    username: str
    role: str
    is_authenticated: bool = True
    expires_at: datetime


def new_session_context(
    user_id: int,
    email: str,
    username: str,
    role: str,
    max_age: timedelta,
    now: datetime | None = None,
) -> SessionContext:
    return SessionContext(
        session_id=secrets.token_urlsafe(32),
        user_id=user_id,
        email=email,
        username=username,
        role=role,
        expires_at=(now or datetime.now(UTC)) + max_age,
    )


class SessionStore:
    """
    In-process map of session id -> SessionContext.

    Contexts are replaced whole, never edited in place. Expired entries are
    dropped on read, and every ``prune_every`` saves all expired entries go,
    so sessions whose cookie never comes back do not accumulate.
    """

    def __init__(self, prune_every: int = 256) -> None:
        self.prune_every = prune_every
        self._sessions: dict[str, SessionContext] = {}
        self._saves_since_prune = 0
        self._lock = threading.Lock()

    def save(self, context: SessionContext, now: datetime | None = None) -> None:
        with self._lock:
            self._sessions[context.session_id] = context
            self._saves_since_prune += 1
            if self._saves_since_prune < self.prune_every:
                return
            expired = self._drop_expired(now or datetime.now(UTC))
        if expired:
            logger.debug("Pruned expired sessions", extra={"count": expired})

    def get(self, session_id: str | None, now: datetime | None = None) -> SessionContext | None:
        if not session_id:
            return None
        current = now or datetime.now(UTC)
        with self._lock:
            context = self._sessions.get(session_id)
            if context is None:
                return None
            if context.expires_at <= current:
                del self._sessions[session_id]
                return None
            return context

    def replace_for_user(self, session_id: str | None, context: SessionContext) -> SessionContext | None:
        """
        Swap the context stored under ``session_id`` when it belongs to the same user.

        The stored entry keeps its session id so the client's cookie stays valid.
        Returns the new stored context, or None when there was nothing to refresh.
        """
        if not session_id:
            return None
        with self._lock:
            existing = self._sessions.get(session_id)
            if existing is None or existing.user_id != context.user_id:
                return None
            refreshed = context.model_copy(update={"session_id": session_id})
            self._sessions[session_id] = refreshed
            return refreshed

    def destroy(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def _drop_expired(self, now: datetime) -> int:
        # Caller holds self._lock.
        expired = [sid for sid, ctx in self._sessions.items() if ctx.expires_at <= now]
        for sid in expired:
            del self._sessions[sid]
        self._saves_since_prune = 0
        return len(expired)

    def prune(self, now: datetime | None = None) -> int:
        with self._lock:
            expired = self._drop_expired(now or datetime.now(UTC))
        if expired:
            logger.debug("Pruned expired sessions", extra={"count": expired})
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
